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
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from lakecat.catalog.catalog_config import CatalogConfig
from lakecat.catalog.location_provider import LocationProvider
from lakecat.common.identifier import TableIdentifier


@dataclass(frozen=True)
class CommitResult:
    """
    Outcome of a conditional update. When accepted, current_token is the new
    version; otherwise it is the live version that caused the rejection, or
    None when the table does not exist.
    """

    accepted: bool
    current_token: Optional[str]


class Catalog(ABC):
    """
    A backend holding the pointer from table identifiers to the current
    version of their metadata document. Implementations only move that
    pointer through conditional_update, so concurrent writers can never
    silently overwrite each other.
    """

    def __init__(self, config: CatalogConfig):
        self.config = config
        self.catalog_type = config.catalog_type
        self.location_provider = LocationProvider(config)
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def get_current_token(self, identifier: TableIdentifier) -> str:
        """Returns the current version token of the table. Raises TableNotFoundError if absent."""

    @abstractmethod
    def fetch_metadata_document(self, identifier: TableIdentifier, token: str) -> bytes:
        """Returns the metadata document of the version identified by token."""

    @abstractmethod
    def conditional_update(self, identifier: TableIdentifier, base_token: Optional[str],
                           document: bytes) -> CommitResult:
        """
        Installs document as the new version of the table if and only if the
        live version still equals base_token. A base_token of None creates the
        table and is rejected when the table already exists.
        """

    @abstractmethod
    def list_namespace(self, namespace: Sequence[str]) -> List[TableIdentifier]:
        """Lists the tables directly inside namespace. Raises NamespaceNotFoundError if absent."""

    @abstractmethod
    def create_namespace(self, namespace: Sequence[str], properties: Optional[Dict[str, str]] = None):
        """Creates namespace. Raises NamespaceAlreadyExistsError if present."""

    @abstractmethod
    def drop_table(self, identifier: TableIdentifier):
        """Removes the table from the catalog. Raises TableNotFoundError if absent."""

    def default_table_location(self, identifier: TableIdentifier, table_uuid: str) -> str:
        return self.location_provider.table_location(identifier, table_uuid)

    def metadata_location(self, token: str) -> Optional[str]:
        """Location of the metadata file behind token, for backends whose versions are files."""
        return None

    def close(self):
        """Releases connections held by this client."""
