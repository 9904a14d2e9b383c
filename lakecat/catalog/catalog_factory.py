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
from typing import Any, Mapping, Union

from lakecat.catalog.catalog import Catalog
from lakecat.catalog.catalog_config import CatalogConfig
from lakecat.catalog.filesystem.hadoop_catalog import HadoopCatalog
from lakecat.catalog.glue.glue_catalog import GlueCatalog
from lakecat.catalog.hive.hive_catalog import HiveCatalog
from lakecat.catalog.nessie.nessie_catalog import NessieCatalog
from lakecat.catalog.rest.rest_catalog import RESTCatalog
from lakecat.common.options.config import CatalogType


class CatalogFactory:

    CATALOG_REGISTRY = {
        CatalogType.HADOOP: HadoopCatalog,
        CatalogType.NESSIE: NessieCatalog,
        CatalogType.HIVE: HiveCatalog,
        CatalogType.GLUE: GlueCatalog,
        CatalogType.REST: RESTCatalog,
    }

    @staticmethod
    def create(config: Union[CatalogConfig, Mapping[str, Any]]) -> Catalog:
        if not isinstance(config, CatalogConfig):
            config = CatalogConfig.from_options(config)
        catalog_class = CatalogFactory.CATALOG_REGISTRY.get(config.catalog_type)
        if catalog_class is None:
            raise ValueError(f"Unknown catalog type: {config.catalog_type}. "
                             f"Available types: {[t.value for t in CatalogFactory.CATALOG_REGISTRY]}")
        return catalog_class(config)
