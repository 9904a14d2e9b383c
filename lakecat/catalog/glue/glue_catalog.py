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

from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Sequence

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from lakecat.catalog.catalog import CommitResult
from lakecat.catalog.catalog_config import CatalogConfig
from lakecat.catalog.catalog_exception import (AccessError,
                                               BackendUnavailableError,
                                               NamespaceAlreadyExistsError,
                                               NamespaceNotFoundError,
                                               TableNotFoundError)
from lakecat.catalog.metastore_catalog import MetastoreCatalog
from lakecat.common.identifier import TableIdentifier
from lakecat.common.options.config import CatalogOptions

ENTITY_NOT_FOUND = "EntityNotFoundException"
ALREADY_EXISTS = "AlreadyExistsException"
CONCURRENT_MODIFICATION = "ConcurrentModificationException"
ACCESS_DENIED = ("AccessDeniedException", "UnrecognizedClientException")


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


class GlueCatalog(MetastoreCatalog):
    """
    Catalog keeping table pointers in the AWS Glue Data Catalog. The pointer
    is the metadata_location table parameter. Updates carry the VersionId
    read together with the base pointer, so Glue rejects the update with a
    ConcurrentModificationException when another writer got in between.

    Namespaces are single level and map to Glue databases.
    """

    def __init__(self, config: CatalogConfig, client=None):
        super().__init__(config)
        options = config.to_options()
        self.catalog_id = options.get(CatalogOptions.GLUE_CATALOG_ID)
        if client is None:
            session_kwargs = {}
            region = options.get(CatalogOptions.GLUE_REGION)
            if region:
                session_kwargs["region_name"] = region
            endpoint = options.get(CatalogOptions.GLUE_ENDPOINT)
            if endpoint:
                session_kwargs["endpoint_url"] = endpoint
            client = boto3.client("glue", **session_kwargs)
        self.client = client

    def _call(self, operation: str, **kwargs):
        if self.catalog_id:
            kwargs["CatalogId"] = self.catalog_id
        return getattr(self.client, operation)(**kwargs)

    @contextmanager
    def _glue_errors(self, identifier: Optional[TableIdentifier], action: str):
        try:
            yield
        except ClientError as e:
            if _error_code(e) in ACCESS_DENIED:
                raise AccessError(f"Access denied while {action}: {e}", self.catalog_type, identifier) from e
            raise BackendUnavailableError(f"Glue failure while {action}: {e}",
                                          self.catalog_type, identifier) from e
        except BotoCoreError as e:
            raise BackendUnavailableError(f"Cannot reach Glue while {action}: {e}",
                                          self.catalog_type, identifier) from e

    @staticmethod
    def _database_name(namespace: Sequence[str]) -> Optional[str]:
        return namespace[0] if len(namespace) == 1 else None

    def _get_table(self, identifier: TableIdentifier) -> Optional[Dict[str, Any]]:
        database = self._database_name(identifier.namespace)
        if database is None:
            return None
        try:
            table = self._call("get_table", DatabaseName=database, Name=identifier.name)["Table"]
        except ClientError as e:
            if _error_code(e) == ENTITY_NOT_FOUND:
                return None
            raise
        parameters = table.get("Parameters") or {}
        if parameters.get(self.TABLE_TYPE_PROP, "").upper() != self.ICEBERG_TABLE_TYPE:
            return None
        return table

    def _database_exists(self, namespace: Sequence[str]) -> bool:
        database = self._database_name(namespace)
        if database is None:
            return False
        try:
            self._call("get_database", Name=database)
        except ClientError as e:
            if _error_code(e) == ENTITY_NOT_FOUND:
                return False
            raise
        return True

    def load_metadata_location(self, identifier: TableIdentifier) -> Optional[str]:
        with self._glue_errors(identifier, "loading the table pointer"):
            table = self._get_table(identifier)
        if table is None:
            return None
        return table["Parameters"].get(self.METADATA_LOCATION_PROP)

    def _table_input(self, identifier: TableIdentifier, new_location: str,
                     previous_location: Optional[str], metadata: Dict[str, Any]) -> Dict[str, Any]:
        parameters = {
            self.TABLE_TYPE_PROP: self.ICEBERG_TABLE_TYPE,
            self.METADATA_LOCATION_PROP: new_location,
        }
        if previous_location is not None:
            parameters[self.PREVIOUS_METADATA_LOCATION_PROP] = previous_location
        return {
            "Name": identifier.name,
            "TableType": "EXTERNAL_TABLE",
            "StorageDescriptor": {"Location": metadata["location"]},
            "Parameters": parameters,
        }

    def swap_metadata_location(self, identifier: TableIdentifier, base_location: Optional[str],
                               new_location: str, metadata: Dict[str, Any]) -> CommitResult:
        database = self._database_name(identifier.namespace)
        with self._glue_errors(identifier, "committing the table pointer"):
            if base_location is None:
                if not self._database_exists(identifier.namespace):
                    raise NamespaceNotFoundError(identifier.namespace, self.catalog_type)
                try:
                    self._call("create_table", DatabaseName=database,
                               TableInput=self._table_input(identifier, new_location, None, metadata))
                except ClientError as e:
                    if _error_code(e) != ALREADY_EXISTS:
                        raise
                    return CommitResult(False, self.load_metadata_location(identifier))
                return CommitResult(True, new_location)

            table = self._get_table(identifier)
            if table is None:
                return CommitResult(False, None)
            current_location = table["Parameters"].get(self.METADATA_LOCATION_PROP)
            if current_location != base_location:
                return CommitResult(False, current_location)
            try:
                self._call("update_table", DatabaseName=database, VersionId=table["VersionId"],
                           TableInput=self._table_input(identifier, new_location, base_location, metadata))
            except ClientError as e:
                if _error_code(e) not in (CONCURRENT_MODIFICATION, ENTITY_NOT_FOUND):
                    raise
                self.logger.warning(f"Glue rejected the update of {identifier} at version {table['VersionId']}")
                return CommitResult(False, self.load_metadata_location(identifier))
        return CommitResult(True, new_location)

    def list_namespace(self, namespace: Sequence[str]) -> List[TableIdentifier]:
        namespace = tuple(namespace)
        with self._glue_errors(None, f"listing database {'.'.join(namespace)}"):
            if not self._database_exists(namespace):
                raise NamespaceNotFoundError(namespace, self.catalog_type)
            kwargs = {"DatabaseName": namespace[0]}
            if self.catalog_id:
                kwargs["CatalogId"] = self.catalog_id
            tables = []
            for page in self.client.get_paginator("get_tables").paginate(**kwargs):
                for table in page["TableList"]:
                    parameters = table.get("Parameters") or {}
                    if parameters.get(self.TABLE_TYPE_PROP, "").upper() == self.ICEBERG_TABLE_TYPE:
                        tables.append(TableIdentifier(namespace, table["Name"]))
        return sorted(tables, key=lambda t: t.name)

    def create_namespace(self, namespace: Sequence[str], properties: Optional[Dict[str, str]] = None):
        namespace = tuple(namespace)
        if self._database_name(namespace) is None:
            # databases are single level, so a deeper namespace can never exist
            raise NamespaceNotFoundError(namespace, self.catalog_type)
        database_input = {
            "Name": namespace[0],
            "LocationUri": self.location_provider.namespace_location(namespace),
            "Parameters": dict(properties or {}),
        }
        with self._glue_errors(None, f"creating database {namespace[0]}"):
            try:
                self._call("create_database", DatabaseInput=database_input)
            except ClientError as e:
                if _error_code(e) == ALREADY_EXISTS:
                    raise NamespaceAlreadyExistsError(namespace, self.catalog_type) from e
                raise

    def drop_table(self, identifier: TableIdentifier):
        with self._glue_errors(identifier, "dropping the table"):
            if self._get_table(identifier) is None:
                raise TableNotFoundError(identifier, self.catalog_type)
            self._call("delete_table", DatabaseName=identifier.namespace[0], Name=identifier.name)
        self.logger.info(f"Dropped table {identifier}")
