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
import random
import time
from enum import Enum
from typing import Callable, Optional

from lakecat.catalog.catalog import Catalog, CommitResult
from lakecat.catalog.catalog_config import CatalogConfig
from lakecat.catalog.catalog_exception import (BackendUnavailableError,
                                               CatalogError,
                                               CommitConflictError,
                                               CommitFailedError,
                                               CommitStateUnknownError,
                                               TableNotFoundError)
from lakecat.common.identifier import TableIdentifier
from lakecat.metadata.metadata_resolver import MetadataResolver
from lakecat.metadata.table_metadata import TableMetadata, rebase
from lakecat.metadata.table_metadata_parser import TableMetadataParser

logger = logging.getLogger(__name__)

# submits repeated after a transient error that left the table unchanged
RESUBMIT_ATTEMPTS = 3


class CommitState(Enum):
    PREPARED = "prepared"
    SUBMITTED = "submitted"
    COMMITTED = "committed"
    CONFLICTED = "conflicted"
    FAILED = "failed"


class CommitCoordinator:
    """
    Advances a table from base_token to a proposed metadata version with
    optimistic concurrency.

    A proposal is submitted as a conditional update. When another writer
    moved the table first, the latest version is loaded, the pending updates
    of the proposal are replayed onto it and the result is submitted again,
    after a randomized exponential backoff. Retries stop after
    commit_retry_attempts rebases or once commit_timeout has elapsed.

    A submit that times out or fails in transit may still have been applied,
    so the live version is read back: if it already contains the proposal
    the commit counts as done, if it cannot be read the outcome is reported
    as CommitStateUnknownError. When the live version is still the base,
    the same proposal is submitted again, at most RESUBMIT_ATTEMPTS times,
    without counting as a conflict retry.

    A proposal built outside TableMetadataBuilder records no updates. It can
    only be committed onto its own base: on a conflict it is compared with
    that base and the commit fails unless the two are identical.
    """

    def __init__(self, client: Catalog, config: Optional[CatalogConfig] = None,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic,
                 rng: Optional[random.Random] = None):
        config = config if config is not None else client.config
        self.client = client
        self.catalog_type = client.catalog_type
        self.retry_attempts = config.commit_retry_attempts
        self.resubmit_attempts = RESUBMIT_ATTEMPTS
        self.timeout = config.commit_timeout.total_seconds()
        self.min_wait = config.commit_min_retry_wait.total_seconds()
        self.max_wait = config.commit_max_retry_wait.total_seconds()
        self.sleep = sleep
        self.clock = clock
        self.rng = rng if rng is not None else random.Random()
        self.state = CommitState.PREPARED

    def commit(self, identifier: TableIdentifier, base_token: Optional[str],
               proposed: TableMetadata) -> TableMetadata:
        """
        Commits proposed on top of base_token and returns it as the new
        current version. base_token None creates the table.
        """
        start = self.clock()
        attempt = 0
        resubmits = 0
        self.state = CommitState.PREPARED
        if proposed.base_token is not None and proposed.base_token != base_token:
            self._fail(f"proposal was built on version {proposed.base_token}, not {base_token}",
                       identifier, base_token, None, None,
                       ValueError(f"base token mismatch: {proposed.base_token} != {base_token}"))
        while True:
            document = TableMetadataParser.to_json(proposed)
            self.state = CommitState.SUBMITTED
            try:
                result = self.client.conditional_update(identifier, base_token, document)
            except BackendUnavailableError as e:
                logger.warning("Commit of %s to %s failed in transit, checking the live version: %s",
                               identifier, self.catalog_type.value, e)
                result = self._check_applied(identifier, base_token, proposed, e)
                if result is None:
                    resubmits += 1
                    if resubmits > self.resubmit_attempts:
                        self._fail(f"gave up after {self.resubmit_attempts} resubmits: {e}", identifier,
                                   base_token, base_token, None, e)
                    self._wait(resubmits, start, identifier, base_token, e)
                    continue
            except CatalogError as e:
                self.state = CommitState.FAILED
                raise CommitFailedError(str(e), identifier, base_token, None, None, self.catalog_type) from e

            if result.accepted:
                self.state = CommitState.COMMITTED
                logger.info("Committed %s at version %s after %d retries", identifier, result.current_token, attempt)
                return proposed.with_version(result.current_token, self.client.metadata_location(result.current_token))

            self.state = CommitState.CONFLICTED
            conflict = CommitConflictError(identifier, base_token, result.current_token, self.catalog_type)
            logger.warning("%s", conflict)
            if base_token is None or result.current_token is None:
                reason = "table already exists" if base_token is None else "table no longer exists"
                self._fail(reason, identifier, base_token, result.current_token, None, conflict)

            latest = self._load_latest(identifier, base_token, result.current_token)
            if attempt >= self.retry_attempts:
                self._fail(f"gave up after {attempt} retries", identifier, base_token, result.current_token,
                           latest, conflict)
            elapsed = self.clock() - start
            if elapsed >= self.timeout:
                self._fail(f"commit timed out after {elapsed:.1f}s", identifier, base_token,
                           result.current_token, latest, conflict)
            base = None if proposed.pending_updates else self._load_base(identifier, base_token)
            try:
                proposed = rebase(proposed, latest, base)
            except ValueError as e:
                self._fail(f"cannot rebase onto version {latest.version_token}: {e}", identifier, base_token,
                           result.current_token, latest, e)

            attempt += 1
            base_token = latest.version_token
            wait = min(self.backoff(attempt), max(self.timeout - (self.clock() - start), 0.0))
            logger.warning("Retrying commit of %s onto version %s in %.3fs (retry %d of %d)",
                           identifier, base_token, wait, attempt, self.retry_attempts)
            self.sleep(wait)

    def backoff(self, attempt: int) -> float:
        """Random wait before retry number attempt, growing exponentially from min_wait up to max_wait."""
        ceiling = min(self.max_wait, self.min_wait * (2 ** (attempt - 1)))
        return self.rng.uniform(self.min_wait, ceiling)

    def _wait(self, resubmit: int, start: float, identifier: TableIdentifier, base_token: Optional[str],
              error: BackendUnavailableError):
        remaining = self.timeout - (self.clock() - start)
        if remaining <= 0:
            self._fail(f"commit timed out after {self.timeout:.1f}s: {error}", identifier, base_token,
                       base_token, None, error)
        wait = min(self.backoff(resubmit), remaining)
        logger.warning("Commit of %s did not land on version %s, resubmitting in %.3fs (%d of %d)",
                       identifier, base_token, wait, resubmit, self.resubmit_attempts)
        self.sleep(wait)

    def _fail(self, reason: str, identifier: TableIdentifier, base_token: Optional[str],
              live_token: Optional[str], latest: Optional[TableMetadata], cause: Exception):
        self.state = CommitState.FAILED
        raise CommitFailedError(reason, identifier, base_token, live_token, latest, self.catalog_type) from cause

    def _load_latest(self, identifier: TableIdentifier, base_token: Optional[str],
                     live_token: str) -> TableMetadata:
        try:
            return MetadataResolver.load_version(self.client, identifier, live_token)
        except CatalogError as e:
            self._fail(f"cannot load version {live_token}: {e}", identifier, base_token, live_token, None, e)

    def _load_base(self, identifier: TableIdentifier, base_token: str) -> Optional[TableMetadata]:
        try:
            return MetadataResolver.load_version(self.client, identifier, base_token)
        except CatalogError as e:
            logger.warning("Cannot load base version %s of %s: %s", base_token, identifier, e)
            return None

    def _check_applied(self, identifier: TableIdentifier, base_token: Optional[str],
                       proposed: TableMetadata, error: BackendUnavailableError) -> Optional[CommitResult]:
        """The outcome of a submit that failed in transit, or None when it never landed."""
        try:
            try:
                live_token = self.client.get_current_token(identifier)
            except TableNotFoundError:
                live_token = None
            live = None
            if live_token is not None and live_token != base_token:
                live = MetadataResolver.load_version(self.client, identifier, live_token)
        except CatalogError as e:
            self.state = CommitState.FAILED
            raise CommitStateUnknownError(f"outcome unknown after {error}", identifier, base_token, None,
                                          None, self.catalog_type) from e
        if live_token == base_token:
            if base_token is None:
                self._fail(f"table was not created: {error}", identifier, None, None, None, error)
            return None
        if live is None:
            return CommitResult(False, None)
        added = proposed.added_snapshot_ids()
        if live == proposed or (added and all(live.snapshot_by_id(i) is not None for i in added)):
            return CommitResult(True, live_token)
        return CommitResult(False, live_token)
