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
import random
import unittest
from dataclasses import replace
from datetime import timedelta

from pyiceberg.table.snapshots import Operation

from lakecat.catalog.catalog_exception import (BackendTimeoutError,
                                               BackendUnavailableError,
                                               CommitFailedError,
                                               CommitStateUnknownError,
                                               CorruptMetadataError)
from lakecat.common.identifier import TableIdentifier
from lakecat.metadata.commit_coordinator import (RESUBMIT_ATTEMPTS,
                                                 CommitCoordinator,
                                                 CommitState)
from lakecat.metadata.metadata_resolver import MetadataResolver
from lakecat.metadata.table_metadata import TableMetadata
from lakecat.metadata.table_metadata_parser import TableMetadataParser
from lakecat.tests.fixtures import manifest_list, orders_schema
from lakecat.tests.mock.memory_catalog import DEFAULT_CONFIG, MemoryCatalog

ORDERS = TableIdentifier.of("tpch", "orders")
LOCATION = "/warehouse/tpch/orders"


class FakeClock:

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds


class CommitCoordinatorTest(unittest.TestCase):

    def setUp(self):
        self.catalog = MemoryCatalog()
        self.catalog.create_namespace(("tpch",))
        self.catalog.put(ORDERS, TableMetadataParser.to_json(TableMetadata.new_table(orders_schema(), LOCATION)))
        self.v1 = MetadataResolver.load(self.catalog, ORDERS)
        self.clock = FakeClock()

    def coordinator(self, config=DEFAULT_CONFIG) -> CommitCoordinator:
        return CommitCoordinator(self.catalog, config, sleep=self.clock.sleep, clock=self.clock,
                                 rng=random.Random(7))

    def append(self, base: TableMetadata, snapshot_id: int, operation: str = Operation.APPEND) -> TableMetadata:
        return base.builder().append_snapshot(manifest_list(LOCATION, snapshot_id), operation=operation,
                                              snapshot_id=snapshot_id).build()

    def commit_concurrently(self, snapshot_id: int):
        """Has another writer append snapshot_id right before the next submit."""
        def writer(identifier):
            other = MetadataResolver.load(self.catalog, identifier)
            self.catalog.put(identifier, TableMetadataParser.to_json(self.append(other, snapshot_id)))
        return writer

    def test_commit_without_contention(self):
        coordinator = self.coordinator()
        committed = coordinator.commit(ORDERS, "1", self.append(self.v1, 1))
        self.assertEqual(committed.version_token, "2")
        self.assertEqual(coordinator.state, CommitState.COMMITTED)
        self.assertEqual(self.clock.sleeps, [])
        self.assertEqual(MetadataResolver.load(self.catalog, ORDERS).current_snapshot_id, 1)

    def test_two_writers_from_same_base(self):
        writer_a = self.append(self.v1, 1)
        writer_b = self.append(self.v1, 2)

        v2 = self.coordinator().commit(ORDERS, self.v1.version_token, writer_a)
        coordinator = self.coordinator()
        v3 = coordinator.commit(ORDERS, self.v1.version_token, writer_b)

        self.assertEqual(v2.version_token, "2")
        self.assertEqual(v3.version_token, "3")
        self.assertEqual(coordinator.state, CommitState.COMMITTED)
        self.assertEqual(len(self.clock.sleeps), 1)
        latest = MetadataResolver.load(self.catalog, ORDERS)
        self.assertEqual(latest.snapshot_ids(), [1, 2])
        self.assertEqual(latest.current_snapshot().parent_snapshot_id, 1)
        self.assertEqual(latest.current_snapshot().sequence_number, 2)
        self.assertEqual(latest, v3)

    def test_gives_up_after_retry_attempts(self):
        config = replace(DEFAULT_CONFIG, commit_retry_attempts=2)
        coordinator = self.coordinator(config)
        snapshot_ids = iter(range(100, 110))

        def always_conflict(identifier):
            self.commit_concurrently(next(snapshot_ids))(identifier)
            self.catalog.before_update = always_conflict
        self.catalog.before_update = always_conflict

        with self.assertRaises(CommitFailedError) as context:
            coordinator.commit(ORDERS, "1", self.append(self.v1, 1))
        error = context.exception
        self.assertIn("gave up after 2 retries", str(error))
        self.assertEqual(error.live_token, "4")
        self.assertEqual(error.last_metadata.version_token, "4")
        self.assertEqual(error.last_metadata.snapshot_ids(), [100, 101, 102])
        self.assertEqual(coordinator.state, CommitState.FAILED)
        self.assertEqual(len(self.clock.sleeps), 2)
        self.assertEqual(self.catalog.updates, 3)

    def test_backoff_is_bounded_and_grows(self):
        config = replace(DEFAULT_CONFIG, commit_min_retry_wait=timedelta(milliseconds=100),
                         commit_max_retry_wait=timedelta(seconds=1))
        coordinator = self.coordinator(config)
        for attempt in range(1, 10):
            wait = coordinator.backoff(attempt)
            self.assertGreaterEqual(wait, 0.1)
            self.assertLessEqual(wait, min(1.0, 0.1 * 2 ** (attempt - 1)))
        self.assertEqual(coordinator.backoff(1), 0.1)

    def test_timeout(self):
        config = replace(DEFAULT_CONFIG, commit_retry_attempts=100, commit_timeout=timedelta(seconds=1),
                         commit_min_retry_wait=timedelta(milliseconds=400),
                         commit_max_retry_wait=timedelta(milliseconds=400))
        coordinator = self.coordinator(config)
        snapshot_ids = iter(range(100, 200))

        def always_conflict(identifier):
            self.commit_concurrently(next(snapshot_ids))(identifier)
            self.catalog.before_update = always_conflict
        self.catalog.before_update = always_conflict

        with self.assertRaises(CommitFailedError) as context:
            coordinator.commit(ORDERS, "1", self.append(self.v1, 1))
        self.assertIn("timed out", str(context.exception))
        self.assertAlmostEqual(sum(self.clock.sleeps), 1.0)

    def test_overwrite_cannot_rebase_over_append(self):
        self.catalog.before_update = self.commit_concurrently(2)
        coordinator = self.coordinator()
        with self.assertRaises(CommitFailedError) as context:
            coordinator.commit(ORDERS, "1", self.append(self.v1, 1, Operation.OVERWRITE))
        self.assertIn("cannot rebase", str(context.exception))
        self.assertIsInstance(context.exception.__cause__, ValueError)
        self.assertEqual(context.exception.last_metadata.current_snapshot_id, 2)
        self.assertEqual(MetadataResolver.load(self.catalog, ORDERS).snapshot_ids(), [2])

    def test_create_conflict(self):
        with self.assertRaises(CommitFailedError) as context:
            self.coordinator().commit(ORDERS, None, self.v1)
        self.assertIn("table already exists", str(context.exception))

    def test_table_dropped_concurrently(self):
        self.catalog.before_update = self.catalog.drop_table
        with self.assertRaises(CommitFailedError) as context:
            self.coordinator().commit(ORDERS, "1", self.append(self.v1, 1))
        self.assertIn("no longer exists", str(context.exception))

    def test_applied_despite_timeout(self):
        self.catalog.fail_update(BackendTimeoutError("read timed out"), applied=True)
        coordinator = self.coordinator()
        committed = coordinator.commit(ORDERS, "1", self.append(self.v1, 1))
        self.assertEqual(committed.version_token, "2")
        self.assertEqual(coordinator.state, CommitState.COMMITTED)
        self.assertEqual(self.catalog.updates, 1)

    def test_not_applied_after_timeout_is_resubmitted(self):
        self.catalog.fail_update(BackendTimeoutError("connect timed out"))
        committed = self.coordinator().commit(ORDERS, "1", self.append(self.v1, 1))
        self.assertEqual(committed.version_token, "2")
        self.assertEqual(MetadataResolver.load(self.catalog, ORDERS).snapshot_ids(), [1])

    def test_unknown_outcome(self):
        self.catalog.fail_update(BackendUnavailableError("connection reset"), applied=True)
        original = self.catalog.conditional_update

        def update_then_break_reads(identifier, base_token, document):
            try:
                return original(identifier, base_token, document)
            finally:
                self.catalog.read_error = BackendUnavailableError("still down")
        self.catalog.conditional_update = update_then_break_reads

        coordinator = self.coordinator()
        with self.assertRaises(CommitStateUnknownError):
            coordinator.commit(ORDERS, "1", self.append(self.v1, 1))
        self.assertEqual(coordinator.state, CommitState.FAILED)

    def test_transient_failure_does_not_use_a_conflict_retry(self):
        config = replace(DEFAULT_CONFIG, commit_retry_attempts=0)
        self.catalog.fail_update(BackendUnavailableError("connection reset"))
        self.catalog.fail_update(BackendTimeoutError("connect timed out"))
        coordinator = self.coordinator(config)
        with self.assertLogs("lakecat.metadata.commit_coordinator", "WARNING") as logs:
            committed = coordinator.commit(ORDERS, "1", self.append(self.v1, 1))
        self.assertEqual(committed.version_token, "2")
        self.assertEqual(coordinator.state, CommitState.COMMITTED)
        self.assertEqual(self.catalog.updates, 1)
        self.assertEqual(len(self.clock.sleeps), 2)
        self.assertFalse(any("conflicted" in line for line in logs.output))

    def test_resubmits_are_bounded(self):
        for _ in range(RESUBMIT_ATTEMPTS + 1):
            self.catalog.fail_update(BackendUnavailableError("connection reset"))
        coordinator = self.coordinator()
        with self.assertRaises(CommitFailedError) as context:
            coordinator.commit(ORDERS, "1", self.append(self.v1, 1))
        self.assertIn(f"gave up after {RESUBMIT_ATTEMPTS} resubmits", str(context.exception))
        self.assertIsInstance(context.exception.__cause__, BackendUnavailableError)
        self.assertEqual(coordinator.state, CommitState.FAILED)
        self.assertEqual(self.catalog.updates, 0)
        self.assertEqual(len(self.clock.sleeps), RESUBMIT_ATTEMPTS)

    def test_unrecorded_change_is_not_dropped_on_conflict(self):
        self.coordinator().commit(ORDERS, "1", self.append(self.v1, 1))
        edited = replace(self.v1, document=self.v1.document.model_copy(update={"properties": {"owner": "b"}}))

        coordinator = self.coordinator()
        with self.assertRaises(CommitFailedError) as context:
            coordinator.commit(ORDERS, "1", edited)
        self.assertIn("cannot rebase", str(context.exception))
        self.assertEqual(coordinator.state, CommitState.FAILED)
        latest = MetadataResolver.load(self.catalog, ORDERS)
        self.assertEqual(latest.version_token, "2")
        self.assertNotIn("owner", latest.properties)

    def test_unrecorded_change_commits_on_its_own_base(self):
        edited = replace(self.v1, document=self.v1.document.model_copy(update={"properties": {"owner": "b"}}))
        committed = self.coordinator().commit(ORDERS, "1", edited)
        self.assertEqual(committed.version_token, "2")
        self.assertEqual(MetadataResolver.load(self.catalog, ORDERS).property("owner"), "b")

    def test_proposal_built_on_another_version(self):
        proposed = self.append(self.v1, 1)
        coordinator = self.coordinator()
        with self.assertRaises(CommitFailedError) as context:
            coordinator.commit(ORDERS, "2", proposed)
        self.assertIn("built on version 1", str(context.exception))
        self.assertEqual(coordinator.state, CommitState.FAILED)
        self.assertEqual(self.catalog.updates, 0)

    def test_corrupt_latest_version(self):
        def corrupt_writer(identifier):
            self.catalog.put(identifier, b"{}")
        self.catalog.before_update = corrupt_writer
        with self.assertRaises(CommitFailedError) as context:
            self.coordinator().commit(ORDERS, "1", self.append(self.v1, 1))
        self.assertIsInstance(context.exception.__cause__, CorruptMetadataError)
        self.assertIsNone(context.exception.last_metadata)


if __name__ == '__main__':
    unittest.main()
