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

import json
from dataclasses import replace
from typing import Dict, List, Optional, Sequence

from lakecat.api.api_request import (CommitTableRequest,
                                     CreateNamespaceRequest,
                                     CreateTableRequest)
from lakecat.api.api_response import (CommitTableResponse, ConfigResponse,
                                      ListTablesResponse, LoadTableResponse)
from lakecat.api.auth import AuthProviderFactory, RESTAuthFunction
from lakecat.api.client import HttpClient
from lakecat.api.resource_paths import ResourcePaths
from lakecat.api.rest_exception import (ConflictException,
                                        ForbiddenException,
                                        NoSuchResourceException,
                                        NotAuthorizedException,
                                        RESTException)
from lakecat.catalog.catalog import Catalog, CommitResult
from lakecat.catalog.catalog_config import CatalogConfig
from lakecat.catalog.catalog_exception import (AccessError,
                                               CatalogConnectionError,
                                               NamespaceAlreadyExistsError,
                                               NamespaceNotFoundError,
                                               TableNotFoundError)
from lakecat.catalog.catalog_utils import CatalogUtils
from lakecat.catalog.location_provider import LocationProvider
from lakecat.common.identifier import TableIdentifier
from lakecat.common.options import Options
from lakecat.common.options.config import CatalogOptions


class RESTCatalog(Catalog):
    """
    Catalog served over HTTP. The server stores metadata documents itself and
    hands out an opaque version string per table state, which is used as the
    version token. Commits name the base version and are rejected with 409
    when the table moved on.
    """

    VERSION_PARAM = "version"
    PAGE_TOKEN_PARAM = "pageToken"

    def __init__(self, config: CatalogConfig, client: Optional[HttpClient] = None):
        super().__init__(config)
        self.client = client if client is not None else HttpClient(
            config.server_uri, timeout=config.request_timeout_seconds())
        options = config.to_options()
        query = {CatalogOptions.WAREHOUSE.key(): config.warehouse} if config.warehouse else {}
        try:
            response = self.client.get_with_params(ResourcePaths.config(), query, ConfigResponse,
                                                   self._auth_function(options))
        except (NotAuthorizedException, ForbiddenException) as e:
            self.client.close()
            raise AccessError(f"Access denied by {config.server_uri}: {e}", self.catalog_type) from e
        except RESTException as e:
            self.client.close()
            raise CatalogConnectionError(f"Cannot load the configuration of {config.server_uri}: {e}",
                                         self.catalog_type) from e
        self.options = Options(response.merge(options.to_map()))
        self.rest_auth_function = self._auth_function(self.options)
        self.resource_paths = ResourcePaths.for_catalog_properties(self.options)

        warehouse = self.options.get(CatalogOptions.WAREHOUSE)
        if warehouse and warehouse != config.warehouse:
            # the server may place tables under a warehouse of its own
            self.location_provider = LocationProvider(replace(config, warehouse=warehouse))

    @staticmethod
    def _auth_function(options: Options) -> RESTAuthFunction:
        return RESTAuthFunction(options.with_prefix(CatalogOptions.HEADER_PREFIX),
                                AuthProviderFactory.create_auth_provider(options))

    def _load_table(self, identifier: TableIdentifier, version: Optional[str] = None) -> LoadTableResponse:
        path = self.resource_paths.table(identifier.namespace, identifier.name)
        params = {self.VERSION_PARAM: version} if version is not None else {}
        try:
            return self.client.get_with_params(path, params, LoadTableResponse, self.rest_auth_function)
        except NoSuchResourceException as e:
            raise TableNotFoundError(identifier, self.catalog_type) from e

    def get_current_token(self, identifier: TableIdentifier) -> str:
        with CatalogUtils.rest_errors(self.catalog_type, identifier, "loading the table version"):
            return self._load_table(identifier).version

    def fetch_metadata_document(self, identifier: TableIdentifier, token: str) -> bytes:
        with CatalogUtils.rest_errors(self.catalog_type, identifier, f"loading version {token}"):
            response = self._load_table(identifier, token)
        return json.dumps(response.metadata).encode("utf-8")

    def _live_token(self, identifier: TableIdentifier) -> Optional[str]:
        try:
            return self.get_current_token(identifier)
        except TableNotFoundError:
            return None

    def conditional_update(self, identifier: TableIdentifier, base_token: Optional[str],
                           document: bytes) -> CommitResult:
        metadata = json.loads(document)
        with CatalogUtils.rest_errors(self.catalog_type, identifier, "committing the table"):
            try:
                if base_token is None:
                    response = self.client.post_with_response_type(
                        self.resource_paths.tables(identifier.namespace),
                        CreateTableRequest(identifier.name, metadata),
                        CommitTableResponse, self.rest_auth_function)
                else:
                    response = self.client.post_with_response_type(
                        self.resource_paths.commit_table(identifier.namespace, identifier.name),
                        CommitTableRequest(base_token, metadata),
                        CommitTableResponse, self.rest_auth_function)
            except ConflictException:
                self.logger.warning(f"Server rejected the commit of {identifier} at version {base_token}")
                return CommitResult(False, self._live_token(identifier))
            except NoSuchResourceException as e:
                if base_token is None:
                    raise NamespaceNotFoundError(identifier.namespace, self.catalog_type) from e
                return CommitResult(False, None)
        self.logger.info(f"Committed {identifier} at version {response.version}")
        return CommitResult(True, response.version)

    def list_namespace(self, namespace: Sequence[str]) -> List[TableIdentifier]:
        namespace = tuple(namespace)
        path = self.resource_paths.tables(namespace)
        tables = []
        page_token = None
        with CatalogUtils.rest_errors(self.catalog_type, None, f"listing namespace {'.'.join(namespace)}"):
            while True:
                params = {self.PAGE_TOKEN_PARAM: page_token} if page_token else {}
                try:
                    response = self.client.get_with_params(path, params, ListTablesResponse,
                                                           self.rest_auth_function)
                except NoSuchResourceException as e:
                    raise NamespaceNotFoundError(namespace, self.catalog_type) from e
                tables.extend(TableIdentifier(tuple(t.namespace), t.name) for t in response.identifiers or [])
                page_token = response.next_page_token
                if not page_token:
                    return tables

    def create_namespace(self, namespace: Sequence[str], properties: Optional[Dict[str, str]] = None):
        namespace = tuple(namespace)
        with CatalogUtils.rest_errors(self.catalog_type, None, f"creating namespace {'.'.join(namespace)}"):
            try:
                self.client.post(self.resource_paths.namespaces(),
                                 CreateNamespaceRequest(list(namespace), dict(properties or {})),
                                 self.rest_auth_function)
            except ConflictException as e:
                raise NamespaceAlreadyExistsError(namespace, self.catalog_type) from e

    def drop_table(self, identifier: TableIdentifier):
        with CatalogUtils.rest_errors(self.catalog_type, identifier, "dropping the table"):
            try:
                self.client.delete(self.resource_paths.table(identifier.namespace, identifier.name),
                                   self.rest_auth_function)
            except NoSuchResourceException as e:
                raise TableNotFoundError(identifier, self.catalog_type) from e
        self.logger.info(f"Dropped table {identifier}")

    def close(self):
        self.client.close()
