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
import threading
from typing import Any, Dict, List, Optional, Tuple

from lakecat.api.api_request import (CommitTableRequest,
                                     CreateNamespaceRequest,
                                     CreateTableRequest)
from lakecat.api.api_response import (CommitTableResponse, ConfigResponse,
                                      ListTablesResponse, LoadTableResponse,
                                      TableIdentifierResponse)
from lakecat.api.rest_util import RESTUtil
from lakecat.common.json_util import JSON
from lakecat.tests.mock.http_server import MockHTTPServer, MockServerError

AUTHORIZATION_HEADER_KEY = "authorization"
PAGE_SIZE = 2


class RESTCatalogServer(MockHTTPServer):
    """
    Mock REST catalog keeping every metadata version of every table in memory.
    Versions are "1", "2", ... per table.
    """

    def __init__(self, config: ConfigResponse, token: Optional[str] = None):
        super().__init__()
        self.config_response = config
        self.token = token
        self.prefix = (config.defaults or {}).get("prefix")
        self.lock = threading.Lock()
        self.namespaces: Dict[Tuple[str, ...], Dict[str, str]] = {}
        # (namespace, name) -> list of metadata versions, oldest first
        self.tables: Dict[Tuple[Tuple[str, ...], str], List[Dict[str, Any]]] = {}

    def route(self, method, segments, params, body, headers):
        if self.token is not None and headers.get(AUTHORIZATION_HEADER_KEY) != f"Bearer {self.token}":
            raise MockServerError(401, "Unauthorized")
        if segments[:1] != ["v1"]:
            raise MockServerError(404, "Not Found")
        path = segments[1:]
        if path == ["config"]:
            return 200, self.config_response
        if self.prefix:
            if path[:1] != [self.prefix]:
                raise MockServerError(404, "Not Found")
            path = path[1:]
        with self.lock:
            if path == ["namespaces"] and method == "POST":
                return self._create_namespace(JSON.from_dict(body, CreateNamespaceRequest))
            if len(path) < 3 or path[0] != "namespaces" or path[2] != "tables":
                raise MockServerError(404, "Not Found")
            namespace = RESTUtil.decode_namespace(path[1])
            if namespace not in self.namespaces:
                raise MockServerError(404, f"Namespace {'.'.join(namespace)} does not exist")
            rest = path[3:]
            if not rest:
                if method == "POST":
                    return self._create_table(namespace, JSON.from_dict(body, CreateTableRequest))
                return self._list_tables(namespace, params.get("pageToken"))
            key = (namespace, rest[0])
            if key not in self.tables:
                raise MockServerError(404, f"Table {rest[0]} does not exist")
            if rest[1:] == ["commit"] and method == "POST":
                return self._commit(key, JSON.from_dict(body, CommitTableRequest))
            if len(rest) == 1 and method == "GET":
                return self._load(key, params.get("version"))
            if len(rest) == 1 and method == "DELETE":
                del self.tables[key]
                return 200, None
        raise MockServerError(404, "Not Found")

    def _create_namespace(self, request: CreateNamespaceRequest):
        namespace = tuple(request.namespace)
        if namespace in self.namespaces:
            raise MockServerError(409, f"Namespace {'.'.join(namespace)} already exists")
        self.namespaces[namespace] = dict(request.properties or {})
        return 200, None

    def _create_table(self, namespace: Tuple[str, ...], request: CreateTableRequest):
        key = (namespace, request.name)
        if key in self.tables:
            raise MockServerError(409, f"Table {request.name} already exists")
        self.tables[key] = [request.metadata]
        return 200, CommitTableResponse(version="1")

    def _list_tables(self, namespace: Tuple[str, ...], page_token: Optional[str]):
        names = sorted(name for ns, name in self.tables if ns == namespace)
        start = int(page_token) if page_token else 0
        page = names[start:start + PAGE_SIZE]
        next_token = str(start + PAGE_SIZE) if start + PAGE_SIZE < len(names) else None
        return 200, ListTablesResponse(
            identifiers=[TableIdentifierResponse(list(namespace), name) for name in page],
            next_page_token=next_token)

    def _load(self, key, version: Optional[str]):
        versions = self.tables[key]
        number = int(version) if version else len(versions)
        if number < 1 or number > len(versions):
            raise MockServerError(404, f"Version {version} does not exist")
        return 200, LoadTableResponse(version=str(number), metadata=versions[number - 1])

    def _commit(self, key, request: CommitTableRequest):
        versions = self.tables[key]
        if request.base_version != str(len(versions)):
            raise MockServerError(409, f"Base version {request.base_version} is not the current "
                                       f"version {len(versions)}")
        versions.append(request.metadata)
        return 200, CommitTableResponse(version=str(len(versions)))
