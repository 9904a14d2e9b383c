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

from typing import Optional, Tuple

from lakecat.common.identifier import TableIdentifier


def _context(catalog_type) -> str:
    if catalog_type is None:
        return ""
    return " [{}]".format(getattr(catalog_type, "value", catalog_type))


class CatalogError(Exception):
    """Base catalog exception"""

    def __init__(self, message: str, catalog_type=None):
        self.catalog_type = catalog_type
        super().__init__(message + _context(catalog_type))


class ConfigurationError(CatalogError):
    """Invalid catalog configuration. Not retryable."""

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__("Invalid catalog option '{}': {}".format(key, reason))


class BackendUnavailableError(CatalogError):
    """Transient backend failure. Callers may retry with backoff."""

    def __init__(self, message: str, catalog_type=None, identifier: Optional[TableIdentifier] = None):
        self.identifier = identifier
        super().__init__(message, catalog_type)


class CatalogConnectionError(BackendUnavailableError):
    """The backend could not be reached while constructing a client"""


class BackendTimeoutError(BackendUnavailableError):
    """A backend call exceeded its timeout. Its effect on the backend is unknown."""


class AccessError(CatalogError):
    """Authentication or authorization failure"""

    def __init__(self, message: str, catalog_type=None, identifier: Optional[TableIdentifier] = None):
        self.identifier = identifier
        super().__init__(message, catalog_type)


class NamespaceNotFoundError(CatalogError):
    """Namespace not exist exception"""

    def __init__(self, namespace: Tuple[str, ...], catalog_type=None):
        self.namespace = tuple(namespace)
        super().__init__("Namespace {} does not exist".format(".".join(self.namespace)), catalog_type)


class NamespaceAlreadyExistsError(CatalogError):
    """Namespace already exist exception"""

    def __init__(self, namespace: Tuple[str, ...], catalog_type=None):
        self.namespace = tuple(namespace)
        super().__init__("Namespace {} already exists".format(".".join(self.namespace)), catalog_type)


class TableNotFoundError(CatalogError):
    """Table not exist exception"""

    def __init__(self, identifier: TableIdentifier, catalog_type=None):
        self.identifier = identifier
        super().__init__("Table {} does not exist".format(identifier.get_full_name()), catalog_type)


class TableAlreadyExistsError(CatalogError):
    """Table already exist exception"""

    def __init__(self, identifier: TableIdentifier, catalog_type=None):
        self.identifier = identifier
        super().__init__("Table {} already exists".format(identifier.get_full_name()), catalog_type)


class CorruptMetadataError(CatalogError):
    """
    The stored metadata of a table violates a structural invariant. Surfaced
    verbatim and never repaired.
    """

    def __init__(self, message: str, identifier: Optional[TableIdentifier] = None,
                 location: Optional[str] = None, catalog_type=None):
        self.identifier = identifier
        self.location = location
        prefix = "Corrupt metadata"
        if identifier is not None:
            prefix += " for table {}".format(identifier.get_full_name())
        if location is not None:
            prefix += " at {}".format(location)
        super().__init__("{}: {}".format(prefix, message), catalog_type)


class CommitConflictError(CatalogError):
    """The live version of a table no longer equals the base of a commit."""

    def __init__(self, identifier: TableIdentifier, base_token: Optional[str], live_token: Optional[str],
                 catalog_type=None):
        self.identifier = identifier
        self.base_token = base_token
        self.live_token = live_token
        super().__init__("Commit to {} conflicted: base version {} but live version is {}".format(
            identifier.get_full_name(), base_token, live_token), catalog_type)


class CommitFailedError(CatalogError):
    """
    A commit was not applied. last_metadata carries the latest metadata known
    to the coordinator so the caller can discard or reconcile its change.
    """

    def __init__(self, message: str, identifier: TableIdentifier, base_token: Optional[str] = None,
                 live_token: Optional[str] = None, last_metadata=None, catalog_type=None):
        self.identifier = identifier
        self.base_token = base_token
        self.live_token = live_token
        self.last_metadata = last_metadata
        super().__init__("Commit to {} failed: {} (base version {}, live version {})".format(
            identifier.get_full_name(), message, base_token, live_token), catalog_type)


class CommitStateUnknownError(CommitFailedError):
    """The commit may or may not have been applied and the live state could not be read back."""
