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

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Optional, Tuple

from pyiceberg.partitioning import PartitionSpec
from pyiceberg.schema import Schema
from pyiceberg.table.snapshots import Operation, Snapshot

from lakecat.snapshot.snapshot import operation_of

if TYPE_CHECKING:
    from lakecat.metadata.table_metadata import (TableMetadata,
                                                 TableMetadataBuilder)


class MetadataUpdate(ABC):
    """
    One change applied by a TableMetadataBuilder. Updates are recorded on the
    metadata they produce so a conflicted commit can replay them onto a newer
    version of the table.
    """

    @abstractmethod
    def apply_to(self, builder: "TableMetadataBuilder") -> None:
        pass

    def rebase_conflict(self, latest: "TableMetadata", proposed: "TableMetadata") -> Optional[str]:
        """Returns why this update of proposed cannot be replayed onto latest, or None when it can."""
        return None


@dataclass(frozen=True)
class AddSnapshot(MetadataUpdate):
    """
    Adds a snapshot and makes it current. The builder assigns the parent and
    the sequence number, so replaying re-parents the snapshot onto whatever
    is current in the newer base.
    """

    snapshot: Snapshot
    base_snapshot_id: Optional[int] = None

    def apply_to(self, builder: "TableMetadataBuilder") -> None:
        builder.add_snapshot(self.snapshot)

    def rebase_conflict(self, latest: "TableMetadata", proposed: "TableMetadata") -> Optional[str]:
        if latest.snapshot_by_id(self.snapshot.snapshot_id) is not None:
            return f"snapshot {self.snapshot.snapshot_id} already exists"
        # only appends commute with concurrent snapshots
        if operation_of(self.snapshot) not in (None, Operation.APPEND) \
                and latest.current_snapshot_id != self.base_snapshot_id \
                and self.base_snapshot_id not in proposed.added_snapshot_ids():
            return "{} snapshot {} was based on snapshot {} but the current snapshot is {}".format(
                operation_of(self.snapshot).value, self.snapshot.snapshot_id, self.base_snapshot_id,
                latest.current_snapshot_id)
        return None


@dataclass(frozen=True)
class AddSchema(MetadataUpdate):
    schema: Schema
    base_schema_id: int

    def apply_to(self, builder: "TableMetadataBuilder") -> None:
        builder.add_schema(self.schema)

    def rebase_conflict(self, latest: "TableMetadata", proposed: "TableMetadata") -> Optional[str]:
        if latest.current_schema_id != self.base_schema_id:
            return "schema changed concurrently: based on schema {} but current schema is {}".format(
                self.base_schema_id, latest.current_schema_id)
        return None


@dataclass(frozen=True)
class AddPartitionSpec(MetadataUpdate):
    spec: PartitionSpec
    base_spec_id: int

    def apply_to(self, builder: "TableMetadataBuilder") -> None:
        builder.add_partition_spec(self.spec)

    def rebase_conflict(self, latest: "TableMetadata", proposed: "TableMetadata") -> Optional[str]:
        if latest.default_spec_id != self.base_spec_id:
            return "partition spec changed concurrently: based on spec {} but default spec is {}".format(
                self.base_spec_id, latest.default_spec_id)
        return None


@dataclass(frozen=True)
class SetProperties(MetadataUpdate):
    updates: Tuple[Tuple[str, str], ...]

    @classmethod
    def of(cls, updates: Dict[str, str]) -> "SetProperties":
        return cls(tuple(sorted(updates.items())))

    def apply_to(self, builder: "TableMetadataBuilder") -> None:
        builder.set_properties(dict(self.updates))


@dataclass(frozen=True)
class RemoveProperties(MetadataUpdate):
    removals: Tuple[str, ...]

    def apply_to(self, builder: "TableMetadataBuilder") -> None:
        builder.remove_properties(self.removals)
