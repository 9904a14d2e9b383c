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

from lakecat.common.json_util import json_field, optional_json_field


class RESTRequest(ABC):
    """RESTRequest"""


@dataclass
class CreateNamespaceRequest(RESTRequest):
    FIELD_NAMESPACE = "namespace"
    FIELD_PROPERTIES = "properties"

    namespace: List[str] = json_field(FIELD_NAMESPACE)
    properties: Dict[str, str] = json_field(FIELD_PROPERTIES, default_factory=dict)


@dataclass
class CreateTableRequest(RESTRequest):
    FIELD_NAME = "name"
    FIELD_METADATA = "metadata"

    name: str = json_field(FIELD_NAME)
    metadata: Dict[str, Any] = json_field(FIELD_METADATA)


@dataclass
class CommitTableRequest(RESTRequest):
    """Replaces the table metadata if the live version still equals base_version."""

    FIELD_BASE_VERSION = "baseVersion"
    FIELD_METADATA = "metadata"

    base_version: Optional[str] = json_field(FIELD_BASE_VERSION)
    metadata: Dict[str, Any] = json_field(FIELD_METADATA)


@dataclass
class ListQuery(RESTRequest):
    FIELD_PAGE_TOKEN = "pageToken"

    page_token: Optional[str] = optional_json_field(FIELD_PAGE_TOKEN)
