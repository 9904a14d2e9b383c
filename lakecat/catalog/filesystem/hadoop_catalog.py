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
import re
from typing import Dict, List, Optional, Sequence

from lakecat.catalog.catalog import Catalog, CommitResult
from lakecat.catalog.catalog_config import CatalogConfig
from lakecat.catalog.catalog_exception import (CatalogConnectionError,
                                               CorruptMetadataError,
                                               NamespaceAlreadyExistsError,
                                               NamespaceNotFoundError,
                                               TableNotFoundError)
from lakecat.catalog.catalog_utils import CatalogUtils
from lakecat.catalog.location_provider import METADATA_DIR
from lakecat.common.file_io import FileIO
from lakecat.common.identifier import TableIdentifier

logger = logging.getLogger(__name__)

VERSION_HINT_FILE = "version-hint.text"
_VERSION_FILE = re.compile(r'^v(\d+)\.metadata\.json$')


class HadoopCatalog(Catalog):
    """
    Catalog kept entirely in the warehouse directory tree.

    Table versions are files metadata/v<N>.metadata.json below the table
    directory. A commit publishes v<N+1> with an exclusive create, so of two
    writers based on v<N> exactly one wins. version-hint.text records the
    latest version as a hint only; readers look for newer files past it.

    Exclusive create is atomic on the local filesystem. Object stores without
    a no-overwrite rename need an external lock for concurrent writers.
    """

    def __init__(self, config: CatalogConfig):
        super().__init__(config)
        self.warehouse = config.warehouse.rstrip('/')
        self.file_io = FileIO(self.warehouse, config.to_options())
        try:
            self.file_io.check_or_mkdirs(self.warehouse)
        except (OSError, ValueError) as e:
            raise CatalogConnectionError(f"Cannot use warehouse {self.warehouse}: {e}",
                                         self.catalog_type) from e

    def namespace_path(self, namespace: Sequence[str]) -> str:
        return self.location_provider.namespace_location(tuple(namespace))

    def table_path(self, identifier: TableIdentifier) -> str:
        return f"{self.namespace_path(identifier.namespace)}/{identifier.name}"

    def metadata_path(self, identifier: TableIdentifier) -> str:
        return f"{self.table_path(identifier)}/{METADATA_DIR}"

    def version_file(self, identifier: TableIdentifier, version: int) -> str:
        return f"{self.metadata_path(identifier)}/v{version}.metadata.json"

    def version_hint_file(self, identifier: TableIdentifier) -> str:
        return f"{self.metadata_path(identifier)}/{VERSION_HINT_FILE}"

    def _read_version_hint(self, identifier: TableIdentifier) -> Optional[int]:
        hint_file = self.version_hint_file(identifier)
        if not self.file_io.exists(hint_file):
            return None
        try:
            return int(self.file_io.read_file_utf8(hint_file).strip())
        except ValueError:
            logger.warning("Ignoring unreadable version hint %s", hint_file)
            return None

    def _list_versions(self, identifier: TableIdentifier) -> List[int]:
        versions = []
        for name in self.file_io.list_file_names(self.metadata_path(identifier)):
            match = _VERSION_FILE.match(name)
            if match:
                versions.append(int(match.group(1)))
        return versions

    def _find_version(self, identifier: TableIdentifier) -> Optional[int]:
        version = self._read_version_hint(identifier)
        if version is None or not self.file_io.exists(self.version_file(identifier, version)):
            versions = self._list_versions(identifier)
            if not versions:
                return None
            version = max(versions)
        # the hint is written after the version file, so it may lag behind
        while self.file_io.exists(self.version_file(identifier, version + 1)):
            version += 1
        return version

    @staticmethod
    def _parse_version(identifier: TableIdentifier, token: str) -> int:
        match = _VERSION_FILE.match(token.rsplit('/', 1)[-1])
        if match is None:
            raise CorruptMetadataError("not a version file", identifier, token)
        return int(match.group(1))

    def get_current_token(self, identifier: TableIdentifier) -> str:
        with CatalogUtils.io_errors(self.catalog_type, identifier, "looking up the current version"):
            version = self._find_version(identifier)
        if version is None:
            raise TableNotFoundError(identifier, self.catalog_type)
        return self.version_file(identifier, version)

    def fetch_metadata_document(self, identifier: TableIdentifier, token: str) -> bytes:
        with CatalogUtils.io_errors(self.catalog_type, identifier, f"reading {token}"):
            try:
                return self.file_io.read_bytes(token)
            except FileNotFoundError as e:
                missing = e
            table_exists = self.file_io.exists(self.table_path(identifier))
        if not table_exists:
            raise TableNotFoundError(identifier, self.catalog_type) from missing
        raise CorruptMetadataError("metadata file is missing", identifier, token, self.catalog_type) from missing

    def conditional_update(self, identifier: TableIdentifier, base_token: Optional[str],
                           document: bytes) -> CommitResult:
        with CatalogUtils.io_errors(self.catalog_type, identifier, "committing metadata"):
            if base_token is None:
                if not self.file_io.exists(self.namespace_path(identifier.namespace)):
                    raise NamespaceNotFoundError(identifier.namespace, self.catalog_type)
                next_version = 1
            else:
                next_version = self._parse_version(identifier, base_token) + 1
            target = self.version_file(identifier, next_version)
            if not self.file_io.try_to_write_exclusive(target, document):
                current = self._find_version(identifier)
                return CommitResult(False, None if current is None else self.version_file(identifier, current))
        self._commit_version_hint(identifier, next_version)
        logger.info("Committed %s version %d", identifier, next_version)
        return CommitResult(True, target)

    def _commit_version_hint(self, identifier: TableIdentifier, version: int):
        hint_file = self.version_hint_file(identifier)
        try:
            if not self.file_io.try_to_write_atomic(hint_file, str(version)):
                self.file_io.overwrite_file_utf8(hint_file, str(version))
        except OSError as e:
            logger.warning("Failed to update version hint %s: %s", hint_file, e)

    def list_namespace(self, namespace: Sequence[str]) -> List[TableIdentifier]:
        namespace = tuple(namespace)
        path = self.namespace_path(namespace)
        with CatalogUtils.io_errors(self.catalog_type, None, f"listing {path}"):
            if not self.file_io.exists(path):
                raise NamespaceNotFoundError(namespace, self.catalog_type)
            tables = []
            for info in self.file_io.list_directories(path):
                identifier = TableIdentifier(namespace, info.base_name)
                if self._list_versions(identifier):
                    tables.append(identifier)
        return sorted(tables, key=lambda t: t.name)

    def create_namespace(self, namespace: Sequence[str], properties: Optional[Dict[str, str]] = None):
        namespace = tuple(namespace)
        path = self.namespace_path(namespace)
        with CatalogUtils.io_errors(self.catalog_type, None, f"creating {path}"):
            if self.file_io.exists(path):
                raise NamespaceAlreadyExistsError(namespace, self.catalog_type)
            self.file_io.mkdirs(path)

    def drop_table(self, identifier: TableIdentifier):
        with CatalogUtils.io_errors(self.catalog_type, identifier, "dropping table"):
            if self._find_version(identifier) is None:
                raise TableNotFoundError(identifier, self.catalog_type)
            self.file_io.delete_dir(self.table_path(identifier))
        logger.info("Dropped table %s", identifier)

    def default_table_location(self, identifier: TableIdentifier, table_uuid: str) -> str:
        return self.table_path(identifier)

    def metadata_location(self, token: str) -> Optional[str]:
        return token
