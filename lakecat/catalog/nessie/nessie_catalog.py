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

from typing import Any, Dict, List, Optional, Sequence

from lakecat.api.auth import AuthProviderFactory, RESTAuthFunction
from lakecat.api.rest_exception import (ConflictException,
                                        NoSuchResourceException,
                                        RESTException)
from lakecat.catalog.catalog import CommitResult
from lakecat.catalog.catalog_config import CatalogConfig
from lakecat.catalog.catalog_exception import (CatalogConnectionError,
                                               ConfigurationError,
                                               NamespaceAlreadyExistsError,
                                               NamespaceNotFoundError,
                                               TableNotFoundError)
from lakecat.catalog.catalog_utils import CatalogUtils
from lakecat.catalog.metastore_catalog import MetastoreCatalog
from lakecat.catalog.nessie.nessie_api import (ICEBERG_TABLE, NAMESPACE,
                                               Content, NessieApi, Operation,
                                               Reference, content_entry,
                                               namespace_entry)
from lakecat.common.identifier import TableIdentifier
from lakecat.common.options.config import CatalogOptions

NESSIE_AUTHOR = "catalog.nessie.author"


class NessieCatalog(MetastoreCatalog):
    """
    Catalog backed by a Nessie server. Table pointers live on a branch
    (catalog.nessie.ref); a commit is sent against the branch pinned at the
    hash the base pointer was read at, so Nessie rejects it with 409 when
    another writer changed the table in between.
    """

    def __init__(self, config: CatalogConfig, api: Optional[NessieApi] = None):
        super().__init__(config)
        self.ref = config.ref
        self.author = config.property(NESSIE_AUTHOR)
        if api is None:
            options = config.to_options()
            auth_function = RESTAuthFunction(
                options.with_prefix(CatalogOptions.HEADER_PREFIX),
                AuthProviderFactory.create_auth_provider(options))
            api = NessieApi(config.server_uri, auth_function, config.request_timeout_seconds())
        self.api = api
        try:
            self.api.get_config()
            self.api.get_reference(self.ref)
        except NoSuchResourceException as e:
            self.api.close()
            raise ConfigurationError(CatalogOptions.NESSIE_REF.key(),
                                     f"reference '{self.ref}' does not exist on {config.server_uri}") from e
        except RESTException as e:
            self.api.close()
            raise CatalogConnectionError(f"Cannot connect to Nessie at {config.server_uri}: {e}",
                                         self.catalog_type) from e

    @staticmethod
    def content_key(identifier: TableIdentifier) -> List[str]:
        return list(identifier.namespace) + [identifier.name]

    def _head(self) -> Reference:
        return self.api.get_reference(self.ref)

    def _table_content(self, ref: str, identifier: TableIdentifier) -> Optional[Content]:
        content = self.api.get_content(ref, self.content_key(identifier))
        if content is None or content.type != ICEBERG_TABLE:
            return None
        return content

    def _namespace_exists(self, ref: str, namespace: Sequence[str]) -> bool:
        if not namespace:
            return True
        content = self.api.get_content(ref, namespace)
        return content is not None and content.type == NAMESPACE

    def load_metadata_location(self, identifier: TableIdentifier) -> Optional[str]:
        with CatalogUtils.rest_errors(self.catalog_type, identifier, "loading the table pointer"):
            content = self._table_content(self.ref, identifier)
        return None if content is None else content.metadata_location

    def swap_metadata_location(self, identifier: TableIdentifier, base_location: Optional[str],
                               new_location: str, metadata: Dict[str, Any]) -> CommitResult:
        with CatalogUtils.rest_errors(self.catalog_type, identifier, "committing the table pointer"):
            head = self._head()
            current = self._table_content(head.pinned(), identifier)
            current_location = None if current is None else current.metadata_location
            if current_location != base_location:
                return CommitResult(False, current_location)
            if current is None and not self._namespace_exists(head.pinned(), identifier.namespace):
                raise NamespaceNotFoundError(identifier.namespace, self.catalog_type)

            content = content_entry(new_location, metadata, None if current is None else current.id)
            verb = "Create" if current is None else "Update"
            try:
                self.api.commit(head, f"{verb} table {identifier}",
                                [Operation.put(self.content_key(identifier), content, current)],
                                self.author)
            except ConflictException:
                self.logger.warning(f"Nessie rejected the commit of {identifier} on {head.pinned()}")
                return CommitResult(False, self.load_metadata_location(identifier))
        return CommitResult(True, new_location)

    def list_namespace(self, namespace: Sequence[str]) -> List[TableIdentifier]:
        namespace = tuple(namespace)
        with CatalogUtils.rest_errors(self.catalog_type, None, f"listing namespace {'.'.join(namespace)}"):
            head = self._head()
            if not self._namespace_exists(head.pinned(), namespace):
                raise NamespaceNotFoundError(namespace, self.catalog_type)
            entries = self.api.get_entries(head.pinned())
        tables = []
        for entry in entries:
            elements = tuple(entry.name.elements)
            if entry.type == ICEBERG_TABLE and elements[:-1] == namespace:
                tables.append(TableIdentifier(namespace, elements[-1]))
        return sorted(tables, key=lambda t: t.name)

    def create_namespace(self, namespace: Sequence[str], properties: Optional[Dict[str, str]] = None):
        namespace = tuple(namespace)
        with CatalogUtils.rest_errors(self.catalog_type, None, f"creating namespace {'.'.join(namespace)}"):
            head = self._head()
            if self.api.get_content(head.pinned(), namespace) is not None:
                raise NamespaceAlreadyExistsError(namespace, self.catalog_type)
            try:
                self.api.commit(head, f"Create namespace {'.'.join(namespace)}",
                                [Operation.put(namespace, namespace_entry(namespace, properties))],
                                self.author)
            except ConflictException as e:
                raise NamespaceAlreadyExistsError(namespace, self.catalog_type) from e

    def drop_table(self, identifier: TableIdentifier):
        with CatalogUtils.rest_errors(self.catalog_type, identifier, "dropping the table"):
            head = self._head()
            if self._table_content(head.pinned(), identifier) is None:
                raise TableNotFoundError(identifier, self.catalog_type)
            self.api.commit(head, f"Drop table {identifier}",
                            [Operation.delete(self.content_key(identifier))], self.author)
        self.logger.info(f"Dropped table {identifier} on {self.ref}")

    def close(self):
        self.api.close()
