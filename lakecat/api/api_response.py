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

from abc import ABC
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from lakecat.common.json_util import json_field


class RESTResponse(ABC):
    pass


@dataclass
class ErrorResponse(RESTResponse):

    resource_type: Optional[str] = json_field("resourceType", default=None)
    resource_name: Optional[str] = json_field("resourceName", default=None)
    message: Optional[str] = json_field("message", default=None)
    code: Optional[int] = json_field("code", default=None)


@dataclass
class ConfigResponse(RESTResponse):
    FIELD_DEFAULTS = "defaults"
    FIELD_OVERRIDES = "overrides"

    defaults: Dict[str, str] = json_field(FIELD_DEFAULTS, default_factory=dict)
    overrides: Dict[str, str] = json_field(FIELD_OVERRIDES, default_factory=dict)

    def merge(self, options: Dict[str, str]) -> Dict[str, str]:
        merged = dict(self.defaults or {})
        merged.update(options)
        merged.update(self.overrides or {})
        return merged


@dataclass
class ListNamespacesResponse(RESTResponse):
    FIELD_NAMESPACES = "namespaces"
    FIELD_NEXT_PAGE_TOKEN = "nextPageToken"

    namespaces: List[List[str]] = json_field(FIELD_NAMESPACES, default_factory=list)
    next_page_token: Optional[str] = json_field(FIELD_NEXT_PAGE_TOKEN, default=None)


@dataclass
class TableIdentifierResponse(RESTResponse):
    FIELD_NAMESPACE = "namespace"
    FIELD_NAME = "name"

    namespace: List[str] = json_field(FIELD_NAMESPACE, default_factory=list)
    name: str = json_field(FIELD_NAME, default=None)


@dataclass
class ListTablesResponse(RESTResponse):
    FIELD_IDENTIFIERS = "identifiers"
    FIELD_NEXT_PAGE_TOKEN = "nextPageToken"

    identifiers: List[TableIdentifierResponse] = json_field(FIELD_IDENTIFIERS, default_factory=list)
    next_page_token: Optional[str] = json_field(FIELD_NEXT_PAGE_TOKEN, default=None)


@dataclass
class LoadTableResponse(RESTResponse):
    FIELD_VERSION = "version"
    FIELD_METADATA_LOCATION = "metadataLocation"
    FIELD_METADATA = "metadata"

    version: str = json_field(FIELD_VERSION, default=None)
    metadata: Dict[str, Any] = json_field(FIELD_METADATA, default_factory=dict)
    metadata_location: Optional[str] = json_field(FIELD_METADATA_LOCATION, default=None)


@dataclass
class CommitTableResponse(RESTResponse):
    FIELD_VERSION = "version"

    version: str = json_field(FIELD_VERSION, default=None)
