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
import time
import uuid
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from pyiceberg.partitioning import PartitionSpec
from pyiceberg.schema import Schema
from pyiceberg.table.metadata import TableMetadataV2, new_table_metadata
from pyiceberg.table.refs import MAIN_BRANCH, SnapshotRef, SnapshotRefType
from pyiceberg.table.snapshots import (MetadataLogEntry, Operation, Snapshot,
                                       SnapshotLogEntry)
from pyiceberg.table.sorting import UNSORTED_SORT_ORDER, SortOrder

from lakecat.metadata.metadata_update import (AddPartitionSpec, AddSchema,
                                              AddSnapshot, MetadataUpdate,
                                              RemoveProperties, SetProperties)
from lakecat.schema.partition_spec import (UNPARTITIONED_SPEC,
                                           check_transform_applies,
                                           same_partitioning, with_spec_id)
from lakecat.schema.schema import find_field, same_schema, with_schema_id
from lakecat.snapshot.snapshot import new_snapshot, with_lineage

SUPPORTED_FORMAT_VERSION = 2

CURRENT_SNAPSHOT_ID = "current-snapshot-id"
# written as -1 and read back as None
NO_CURRENT_SNAPSHOT = -1

DEFAULT_FILE_FORMAT = "write.format.default"
METADATA_PREVIOUS_VERSIONS_MAX = "write.metadata.previous-versions-max"
METADATA_PREVIOUS_VERSIONS_MAX_DEFAULT = 100


def current_time_millis() -> int:
    return int(time.time() * 1000)


def generate_snapshot_id() -> int:
    snapshot_id = 0
    while snapshot_id == 0:
        snapshot_id = uuid.uuid4().int & ((1 << 63) - 1)
    return snapshot_id


@dataclass(frozen=True, eq=False)
class TableMetadata:
    """
    One immutable version of a table's metadata document.

    document holds the Iceberg v2 model; extra_fields keeps top-level keys
    of a parsed document the model does not know, so they are written back
    unchanged. Equality covers the serialized document only. version_token
    and metadata_location say where this version was read from or committed
    to; base_token and pending_updates describe a proposal built by
    TableMetadataBuilder on top of the version identified by base_token.
    """

    document: TableMetadataV2
    extra_fields: Mapping[str, Any] = field(default_factory=dict)

    version_token: Optional[str] = field(default=None, repr=False)
    metadata_location: Optional[str] = field(default=None, repr=False)
    base_token: Optional[str] = field(default=None, repr=False)
    pending_updates: Tuple[MetadataUpdate, ...] = field(default=(), repr=False)

    def __post_init__(self):
        object.__setattr__(self, 'extra_fields', MappingProxyType(dict(self.extra_fields)))
        object.__setattr__(self, 'pending_updates', tuple(self.pending_updates))

    def __eq__(self, other) -> bool:
        if not isinstance(other, TableMetadata):
            return NotImplemented
        return self.as_dict() == other.as_dict()

    def as_dict(self) -> Dict[str, Any]:
        """The metadata document as JSON-compatible values, in the Iceberg v2 layout."""
        data = json.loads(self.document.model_dump_json())
        data.setdefault(CURRENT_SNAPSHOT_ID, NO_CURRENT_SNAPSHOT)
        for key, value in self.extra_fields.items():
            data.setdefault(key, value)
        return data

    @staticmethod
    def new_table(schema: Schema, location: str, partition_spec: Optional[PartitionSpec] = None,
                  properties: Optional[Dict[str, str]] = None,
                  table_uuid: Optional[str] = None) -> "TableMetadata":
        """Metadata of a table without snapshots. Field, schema and spec ids are freshly assigned."""
        spec = partition_spec or UNPARTITIONED_SPEC
        for partition_field in spec.fields:
            source = find_field(schema, partition_field.source_id)
            if source is None:
                raise ValueError(f"Partition field {partition_field.name} references unknown column "
                                 f"{partition_field.source_id}")
            check_transform_applies(partition_field.transform, source.field_type)
        document = new_table_metadata(
            schema=schema,
            partition_spec=spec,
            sort_order=UNSORTED_SORT_ORDER,
            location=location.rstrip("/"),
            properties={str(k): str(v) for k, v in (properties or {}).items()},
            table_uuid=uuid.UUID(table_uuid) if table_uuid else None,
        )
        if not isinstance(document, TableMetadataV2):
            raise ValueError(f"Unsupported format version: {document.format_version}")
        return TableMetadata(document)

    @property
    def format_version(self) -> int:
        return self.document.format_version

    @property
    def table_uuid(self) -> str:
        return str(self.document.table_uuid)

    @property
    def location(self) -> str:
        return self.document.location

    @property
    def last_sequence_number(self) -> int:
        return self.document.last_sequence_number

    @property
    def last_updated_ms(self) -> int:
        return self.document.last_updated_ms

    @property
    def last_column_id(self) -> int:
        return self.document.last_column_id

    @property
    def schemas(self) -> Tuple[Schema, ...]:
        return tuple(self.document.schemas)

    @property
    def current_schema_id(self) -> int:
        return self.document.current_schema_id

    @property
    def partition_specs(self) -> Tuple[PartitionSpec, ...]:
        return tuple(self.document.partition_specs)

    @property
    def default_spec_id(self) -> int:
        return self.document.default_spec_id

    @property
    def last_partition_id(self) -> int:
        if self.document.last_partition_id is not None:
            return self.document.last_partition_id
        return max(s.last_assigned_field_id for s in self.document.partition_specs)

    @property
    def sort_orders(self) -> Tuple[SortOrder, ...]:
        return tuple(self.document.sort_orders)

    @property
    def default_sort_order_id(self) -> int:
        return self.document.default_sort_order_id

    @property
    def properties(self) -> Mapping[str, str]:
        return MappingProxyType(self.document.properties)

    @property
    def current_snapshot_id(self) -> Optional[int]:
        return self.document.current_snapshot_id

    @property
    def refs(self) -> Mapping[str, SnapshotRef]:
        return MappingProxyType(self.document.refs)

    @property
    def snapshots(self) -> Tuple[Snapshot, ...]:
        return tuple(self.document.snapshots)

    @property
    def snapshot_log(self) -> Tuple[SnapshotLogEntry, ...]:
        return tuple(self.document.snapshot_log)

    @property
    def metadata_log(self) -> Tuple[MetadataLogEntry, ...]:
        return tuple(self.document.metadata_log)

    def schema(self) -> Schema:
        return self.schema_by_id(self.current_schema_id)

    def schema_by_id(self, schema_id: int) -> Optional[Schema]:
        return next((s for s in self.document.schemas if s.schema_id == schema_id), None)

    def spec(self) -> PartitionSpec:
        return self.spec_by_id(self.default_spec_id)

    def spec_by_id(self, spec_id: int) -> Optional[PartitionSpec]:
        return next((s for s in self.document.partition_specs if s.spec_id == spec_id), None)

    def current_snapshot(self) -> Optional[Snapshot]:
        if self.current_snapshot_id is None:
            return None
        return self.snapshot_by_id(self.current_snapshot_id)

    def snapshot_by_id(self, snapshot_id: int) -> Optional[Snapshot]:
        return next((s for s in self.document.snapshots if s.snapshot_id == snapshot_id), None)

    def snapshot_ids(self) -> List[int]:
        return [s.snapshot_id for s in self.document.snapshots]

    def added_snapshot_ids(self) -> List[int]:
        return [u.snapshot.snapshot_id for u in self.pending_updates if isinstance(u, AddSnapshot)]

    def ancestors(self) -> List[Snapshot]:
        """The current snapshot followed by its retained ancestors, newest first."""
        result = []
        snapshot = self.current_snapshot()
        while snapshot is not None:
            result.append(snapshot)
            if snapshot.parent_snapshot_id is None:
                break
            snapshot = self.snapshot_by_id(snapshot.parent_snapshot_id)
        return result

    def property(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.document.properties.get(key, default)

    def is_empty(self) -> bool:
        return self.current_snapshot_id is None

    def with_version(self, version_token: Optional[str], metadata_location: Optional[str] = None) -> "TableMetadata":
        """This document as committed version version_token, with no pending changes."""
        return replace(self, version_token=version_token, metadata_location=metadata_location,
                       base_token=None, pending_updates=())

    def builder(self) -> "TableMetadataBuilder":
        return TableMetadataBuilder(self)


class TableMetadataBuilder:
    """
    Produces a new TableMetadata from a base version. Every change is
    recorded so the result can be rebased onto a newer version:

        proposed = base.builder().append_snapshot("s3://bucket/t/metadata/snap-1.avro").build()

    Sort orders, statistics and refs other than main are carried over from
    the base unchanged.
    """

    def __init__(self, base: TableMetadata):
        document = base.document
        self.base = base
        self.last_sequence_number = document.last_sequence_number
        self.last_column_id = document.last_column_id
        self.schemas = list(document.schemas)
        self.current_schema_id = document.current_schema_id
        self.partition_specs = list(document.partition_specs)
        self.default_spec_id = document.default_spec_id
        self.last_partition_id = base.last_partition_id
        self.properties = dict(document.properties)
        self.current_snapshot_id = document.current_snapshot_id
        self.snapshots = list(document.snapshots)
        self.snapshot_log = list(document.snapshot_log)
        self.refs = dict(document.refs)
        self.last_updated_ms = document.last_updated_ms
        self.updates: List[MetadataUpdate] = []

    def _current_schema(self) -> Schema:
        return next(s for s in self.schemas if s.schema_id == self.current_schema_id)

    def add_schema(self, schema: Schema) -> "TableMetadataBuilder":
        """Adds schema, reusing the id of an identical existing schema, and makes it current."""
        base_schema_id = self.current_schema_id
        existing = next((s for s in self.schemas if same_schema(s, schema)), None)
        if existing is None:
            existing = with_schema_id(schema, max(s.schema_id for s in self.schemas) + 1)
            self.schemas.append(existing)
        self.current_schema_id = existing.schema_id
        self.last_column_id = max(self.last_column_id, schema.highest_field_id)
        self.updates.append(AddSchema(schema, base_schema_id))
        return self

    def add_partition_spec(self, spec: PartitionSpec) -> "TableMetadataBuilder":
        """Adds spec, reusing the id of a compatible existing spec, and makes it the default."""
        base_spec_id = self.default_spec_id
        schema = self._current_schema()
        for partition_field in spec.fields:
            source = find_field(schema, partition_field.source_id)
            if source is None:
                raise ValueError(f"Partition field {partition_field.name} references unknown column "
                                 f"{partition_field.source_id}")
            check_transform_applies(partition_field.transform, source.field_type)
        existing = next((s for s in self.partition_specs if same_partitioning(s, spec)), None)
        if existing is None:
            existing = with_spec_id(spec, max(s.spec_id for s in self.partition_specs) + 1)
            self.partition_specs.append(existing)
        self.default_spec_id = existing.spec_id
        self.last_partition_id = max(self.last_partition_id, spec.last_assigned_field_id)
        self.updates.append(AddPartitionSpec(spec, base_spec_id))
        return self

    def add_snapshot(self, snapshot: Snapshot) -> "TableMetadataBuilder":
        """
        Adds snapshot on top of the current snapshot and makes it current on
        the main branch. The parent and sequence number of the given snapshot
        are replaced.
        """
        if any(s.snapshot_id == snapshot.snapshot_id for s in self.snapshots):
            raise ValueError(f"Snapshot {snapshot.snapshot_id} already exists")
        base_snapshot_id = self.current_snapshot_id
        self.last_sequence_number += 1
        added = with_lineage(snapshot, self.current_snapshot_id, self.last_sequence_number,
                             self.current_schema_id)
        self.snapshots.append(added)
        self.current_snapshot_id = added.snapshot_id
        main = self.refs.get(MAIN_BRANCH)
        if main is None:
            self.refs[MAIN_BRANCH] = SnapshotRef(snapshot_id=added.snapshot_id,
                                                 snapshot_ref_type=SnapshotRefType.BRANCH)
        else:
            # keeps the retention settings of the branch
            self.refs[MAIN_BRANCH] = main.model_copy(update={"snapshot_id": added.snapshot_id})
        self.snapshot_log.append(SnapshotLogEntry(snapshot_id=added.snapshot_id, timestamp_ms=added.timestamp_ms))
        self.last_updated_ms = max(self.last_updated_ms, added.timestamp_ms)
        self.updates.append(AddSnapshot(snapshot, base_snapshot_id))
        return self

    def append_snapshot(self, manifest_list: str, summary: Optional[Dict[str, str]] = None,
                        operation: Union[Operation, str] = Operation.APPEND,
                        snapshot_id: Optional[int] = None) -> "TableMetadataBuilder":
        try:
            operation = Operation(operation)
        except ValueError:
            raise ValueError(f"Unknown snapshot operation: {operation}") from None
        return self.add_snapshot(new_snapshot(
            snapshot_id=snapshot_id if snapshot_id is not None else generate_snapshot_id(),
            manifest_list=manifest_list,
            timestamp_ms=current_time_millis(),
            operation=operation,
            summary=summary,
            parent_snapshot_id=self.current_snapshot_id,
            sequence_number=self.last_sequence_number + 1,
        ))

    def set_properties(self, updates: Dict[str, str]) -> "TableMetadataBuilder":
        self.properties.update({k: str(v) for k, v in updates.items()})
        self.updates.append(SetProperties.of(updates))
        return self

    def remove_properties(self, removals: Iterable[str]) -> "TableMetadataBuilder":
        removals = tuple(removals)
        for key in removals:
            self.properties.pop(key, None)
        self.updates.append(RemoveProperties(removals))
        return self

    def _metadata_log(self) -> List[MetadataLogEntry]:
        log = list(self.base.document.metadata_log)
        if self.base.metadata_location is not None:
            log.append(MetadataLogEntry(metadata_file=self.base.metadata_location,
                                        timestamp_ms=self.base.last_updated_ms))
        max_entries = int(self.properties.get(METADATA_PREVIOUS_VERSIONS_MAX,
                                              METADATA_PREVIOUS_VERSIONS_MAX_DEFAULT))
        return log[-max_entries:] if max_entries > 0 else []

    def build(self) -> TableMetadata:
        last_updated_ms = max(self.last_updated_ms, current_time_millis()) if self.updates else self.last_updated_ms
        document = self.base.document.model_copy(update={
            "last_sequence_number": self.last_sequence_number,
            "last_updated_ms": last_updated_ms,
            "last_column_id": self.last_column_id,
            "schemas": list(self.schemas),
            "current_schema_id": self.current_schema_id,
            "partition_specs": list(self.partition_specs),
            "default_spec_id": self.default_spec_id,
            "last_partition_id": self.last_partition_id,
            "properties": dict(self.properties),
            "current_snapshot_id": self.current_snapshot_id,
            "snapshots": list(self.snapshots),
            "snapshot_log": list(self.snapshot_log),
            "metadata_log": self._metadata_log(),
            "refs": dict(self.refs),
        })
        return TableMetadata(
            document,
            self.base.extra_fields,
            base_token=self.base.version_token if self.base.version_token is not None else self.base.base_token,
            pending_updates=self.base.pending_updates + tuple(self.updates),
        )


def rebase(proposed: TableMetadata, latest: TableMetadata, base: Optional[TableMetadata] = None) -> TableMetadata:
    """
    Replays the pending updates of proposed onto latest. Raises ValueError
    naming the first update that cannot be replayed.

    A proposal without recorded updates can only be rebased when base, the
    version it was built on, is given and the proposal does not differ from
    it. Any other change it carries could not be replayed.
    """
    if not proposed.pending_updates and (base is None or proposed != base):
        raise ValueError("proposal carries changes that were not recorded as updates and cannot be replayed")
    for update in proposed.pending_updates:
        reason = update.rebase_conflict(latest, proposed)
        if reason is not None:
            raise ValueError(reason)
    builder = TableMetadataBuilder(latest)
    for update in proposed.pending_updates:
        update.apply_to(builder)
    return builder.build()
