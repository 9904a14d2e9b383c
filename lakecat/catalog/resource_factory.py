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

import logging
import uuid
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from cachetools import LRUCache
from pyiceberg.partitioning import PartitionSpec
from pyiceberg.schema import Schema
from readerwriterlock import rwlock

from lakecat.catalog.catalog import Catalog
from lakecat.catalog.catalog_config import CatalogConfig
from lakecat.catalog.catalog_exception import TableAlreadyExistsError
from lakecat.catalog.catalog_factory import CatalogFactory
from lakecat.common.identifier import TableIdentifier, parse_namespace
from lakecat.metadata.commit_coordinator import CommitCoordinator
from lakecat.metadata.metadata_resolver import MetadataResolver
from lakecat.metadata.table_metadata import DEFAULT_FILE_FORMAT, TableMetadata
from lakecat.metadata.table_metadata_parser import TableMetadataParser

logger = logging.getLogger(__name__)

DEFAULT_MAX_CLIENTS = 64

Identifier = Union[str, TableIdentifier]


class _ClientCache(LRUCache):
    """LRU cache of catalog clients that closes the clients it evicts."""

    def popitem(self):
        config, client = super().popitem()
        logger.info("Evicting catalog client for %s", config)
        _close_quietly(client)
        return config, client


def _close_quietly(client: Catalog):
    try:
        client.close()
    except Exception:
        logger.warning("Failed to close catalog client %s", client, exc_info=True)


class ResourceFactory:
    """
    Entry point of an engine into its catalogs. Hands out one client per
    distinct CatalogConfig, constructed on first use and reused until it is
    invalidated or evicted, and exposes table resolution and commits on top
    of those clients.

        factory = ResourceFactory()
        metadata = factory.resolve(config, "tpch.orders")
        proposed = metadata.builder().append_snapshot(manifest_list).build()
        factory.propose(config, "tpch.orders", metadata.version_token, proposed)
    """

    def __init__(self, max_clients: int = DEFAULT_MAX_CLIENTS,
                 catalog_loader: Callable[[CatalogConfig], Catalog] = CatalogFactory.create):
        self._clients = _ClientCache(maxsize=max_clients)
        self._clients_lock = rwlock.RWLockFair()
        self._catalog_loader = catalog_loader

    @staticmethod
    def _config(config: Union[CatalogConfig, Mapping[str, Any]]) -> CatalogConfig:
        if isinstance(config, CatalogConfig):
            return config
        return CatalogConfig.from_options(config)

    def get_client(self, config: Union[CatalogConfig, Mapping[str, Any]]) -> Catalog:
        config = self._config(config)
        rlock = self._clients_lock.gen_rlock()
        rlock.acquire()
        try:
            client = self._clients.get(config)
            if client is not None:
                return client
        finally:
            rlock.release()
        wlock = self._clients_lock.gen_wlock()
        wlock.acquire()
        try:
            client = self._clients.get(config)
            if client is not None:
                return client
            client = self._catalog_loader(config)
            self._clients[config] = client
            logger.info("Created %s catalog client for %s", config.catalog_type.value, config)
            return client
        finally:
            wlock.release()

    def invalidate(self, config: Union[CatalogConfig, Mapping[str, Any]]):
        """Closes and forgets the client of config. Invalidating an unknown config does nothing."""
        config = self._config(config)
        wlock = self._clients_lock.gen_wlock()
        wlock.acquire()
        try:
            client = self._clients.pop(config, None)
        finally:
            wlock.release()
        if client is not None:
            logger.info("Invalidated catalog client for %s", config)
            _close_quietly(client)

    def cached_clients(self) -> int:
        return len(self._clients)

    def close(self):
        wlock = self._clients_lock.gen_wlock()
        wlock.acquire()
        try:
            # pop instead of clear, which would go through the evicting popitem
            clients = [self._clients.pop(config) for config in list(self._clients.keys())]
        finally:
            wlock.release()
        for client in clients:
            _close_quietly(client)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @staticmethod
    def resolve_table(client: Catalog, identifier: TableIdentifier) -> TableMetadata:
        return MetadataResolver.load(client, identifier)

    def resolve(self, config: Union[CatalogConfig, Mapping[str, Any]], identifier: Identifier) -> TableMetadata:
        """Current metadata of the table. Unqualified names are looked up in the configured namespace."""
        config = self._config(config)
        return self.resolve_table(self.get_client(config), TableIdentifier.coerce(identifier, config.namespace))

    def propose(self, config: Union[CatalogConfig, Mapping[str, Any]], identifier: Identifier,
                base_token: Optional[str], new_metadata: TableMetadata) -> TableMetadata:
        """Commits new_metadata on top of base_token and returns the committed version."""
        config = self._config(config)
        client = self.get_client(config)
        return CommitCoordinator(client, config).commit(
            TableIdentifier.coerce(identifier, config.namespace), base_token, new_metadata)

    def create_namespace(self, config: Union[CatalogConfig, Mapping[str, Any]],
                         namespace: Union[str, Sequence[str]], properties: Optional[Dict[str, str]] = None):
        self.get_client(config).create_namespace(parse_namespace(namespace), properties)

    def create_table(self, config: Union[CatalogConfig, Mapping[str, Any]], identifier: Identifier,
                     schema: Schema, partition_spec: Optional[PartitionSpec] = None,
                     properties: Optional[Dict[str, str]] = None) -> TableMetadata:
        config = self._config(config)
        client = self.get_client(config)
        identifier = TableIdentifier.coerce(identifier, config.namespace)
        table_uuid = str(uuid.uuid4())
        table_properties = {DEFAULT_FILE_FORMAT: config.default_file_format.value.lower()}
        table_properties.update(properties or {})
        metadata = TableMetadata.new_table(schema, client.default_table_location(identifier, table_uuid),
                                           partition_spec, table_properties, table_uuid)
        result = client.conditional_update(identifier, None, TableMetadataParser.to_json(metadata))
        if not result.accepted:
            raise TableAlreadyExistsError(identifier, config.catalog_type)
        logger.info("Created table %s at %s", identifier, metadata.location)
        return metadata.with_version(result.current_token, client.metadata_location(result.current_token))

    def list_tables(self, config: Union[CatalogConfig, Mapping[str, Any]],
                    namespace: Union[str, Sequence[str]]) -> List[TableIdentifier]:
        return self.get_client(config).list_namespace(parse_namespace(namespace))

    def drop_table(self, config: Union[CatalogConfig, Mapping[str, Any]], identifier: Identifier):
        config = self._config(config)
        self.get_client(config).drop_table(TableIdentifier.coerce(identifier, config.namespace))
