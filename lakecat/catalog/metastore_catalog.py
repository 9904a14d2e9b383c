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
import uuid
from abc import abstractmethod
from typing import Any, Dict, Optional

from lakecat.catalog.catalog import Catalog, CommitResult
from lakecat.catalog.catalog_config import CatalogConfig
from lakecat.catalog.catalog_exception import (CorruptMetadataError,
                                               TableNotFoundError)
from lakecat.catalog.catalog_utils import CatalogUtils
from lakecat.catalog.location_provider import LocationProvider
from lakecat.common.file_io import FileIO
from lakecat.common.identifier import TableIdentifier


class MetastoreCatalog(Catalog):
    """
    Base of catalogs that store each metadata version as an immutable file
    in the warehouse and keep only a pointer to the current file in the
    backend. The metadata file location is the version token.
    """

    METADATA_LOCATION_PROP = "metadata_location"
    PREVIOUS_METADATA_LOCATION_PROP = "previous_metadata_location"
    TABLE_TYPE_PROP = "table_type"
    ICEBERG_TABLE_TYPE = "ICEBERG"

    def __init__(self, config: CatalogConfig):
        super().__init__(config)
        self.file_io = FileIO(config.warehouse, config.to_options())

    @abstractmethod
    def load_metadata_location(self, identifier: TableIdentifier) -> Optional[str]:
        """Current metadata location of the table, or None if the table does not exist."""

    @abstractmethod
    def swap_metadata_location(self, identifier: TableIdentifier, base_location: Optional[str],
                               new_location: str, metadata: Dict[str, Any]) -> CommitResult:
        """Points the table at new_location if it still points at base_location."""

    def get_current_token(self, identifier: TableIdentifier) -> str:
        location = self.load_metadata_location(identifier)
        if location is None:
            raise TableNotFoundError(identifier, self.catalog_type)
        return location

    def fetch_metadata_document(self, identifier: TableIdentifier, token: str) -> bytes:
        with CatalogUtils.io_errors(self.catalog_type, identifier, f"reading {token}"):
            try:
                return self.file_io.read_bytes(token)
            except FileNotFoundError as e:
                missing = e
        raise CorruptMetadataError("metadata file is missing", identifier, token, self.catalog_type) from missing

    def new_metadata_location(self, metadata: Dict[str, Any], base_location: Optional[str]) -> str:
        version = CatalogUtils.parse_metadata_file_version(base_location) + 1
        directory = LocationProvider.metadata_location(metadata["location"], metadata.get("properties") or {})
        return f"{directory}/{version:05d}-{uuid.uuid4()}.metadata.json"

    def conditional_update(self, identifier: TableIdentifier, base_token: Optional[str],
                           document: bytes) -> CommitResult:
        metadata = json.loads(document)
        new_location = self.new_metadata_location(metadata, base_token)
        with CatalogUtils.io_errors(self.catalog_type, identifier, f"writing {new_location}"):
            self.file_io.write_bytes(new_location, document)
        # on errors the file stays: the swap may have been applied
        result = self.swap_metadata_location(identifier, base_token, new_location, metadata)
        if result.accepted:
            self.logger.info(f"Committed {identifier} at {new_location}")
        else:
            self.file_io.delete_quietly(new_location)
        return result

    def metadata_location(self, token: str) -> Optional[str]:
        return token
