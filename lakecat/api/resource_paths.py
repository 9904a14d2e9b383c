################################################################################
#  Licensed to the Apache Software Foundation (ASF) under one
#  or more contributor license agreements.  See the NOTICE file
#  distributed with this work for additional information
#  regarding copyright ownership.  The ASF licenses this file
#  to you under the Apache License, Version 2.0 (the
#  "License"); you may not use this file except in compliance
#  with the License.  You may obtain a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
#  Unless required by applicable law or agreed to in writing, software
#  distributed under the License is distributed on an "AS IS" BASIS,
#  WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#  See the License for the specific language governing permissions and
# limitations under the License.
################################################################################

from typing import Sequence

from lakecat.api.rest_util import RESTUtil
from lakecat.common.options import Options
from lakecat.common.options.config import CatalogOptions


class ResourcePaths:
    V1 = "v1"
    NAMESPACES = "namespaces"
    TABLES = "tables"

    def __init__(self, prefix: str):
        self.base_path = "/{}/{}".format(self.V1, prefix).rstrip("/")

    @classmethod
    def for_catalog_properties(
            cls, options: Options) -> "ResourcePaths":
        prefix = options.get(CatalogOptions.PREFIX, "")
        return cls(prefix)

    @staticmethod
    def config() -> str:
        return "/{}/config".format(ResourcePaths.V1)

    def namespaces(self) -> str:
        return "{}/{}".format(self.base_path, self.NAMESPACES)

    def namespace(self, namespace: Sequence[str]) -> str:
        return "{}/{}/{}".format(self.base_path, self.NAMESPACES, RESTUtil.encode_namespace(namespace))

    def tables(self, namespace: Sequence[str]) -> str:
        return "{}/{}".format(self.namespace(namespace), self.TABLES)

    def table(self, namespace: Sequence[str], table_name: str) -> str:
        return "{}/{}".format(self.tables(namespace), RESTUtil.encode_string(table_name))

    def commit_table(self, namespace: Sequence[str], table_name: str) -> str:
        return "{}/commit".format(self.table(namespace, table_name))
