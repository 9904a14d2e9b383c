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

from typing import Dict, Optional, Union

from pyiceberg.table.snapshots import Operation, Snapshot, Summary


def operation_of(snapshot: Snapshot) -> Optional[Operation]:
    return snapshot.summary.operation if snapshot.summary is not None else None


def new_snapshot(snapshot_id: int, manifest_list: str, timestamp_ms: int,
                 operation: Union[Operation, str] = Operation.APPEND,
                 summary: Optional[Dict[str, str]] = None,
                 parent_snapshot_id: Optional[int] = None,
                 sequence_number: int = 0) -> Snapshot:
    """A snapshot whose summary carries operation; raises ValueError for an unknown operation."""
    return Snapshot(
        snapshot_id=snapshot_id,
        parent_snapshot_id=parent_snapshot_id,
        sequence_number=sequence_number,
        timestamp_ms=timestamp_ms,
        manifest_list=manifest_list,
        summary=Summary(operation=Operation(operation), **{k: str(v) for k, v in (summary or {}).items()}),
    )


def with_lineage(snapshot: Snapshot, parent_snapshot_id: Optional[int], sequence_number: int,
                 schema_id: Optional[int]) -> Snapshot:
    """Returns a copy placed on top of another parent, keeping the snapshot id and files."""
    return snapshot.model_copy(update={
        "parent_snapshot_id": parent_snapshot_id,
        "sequence_number": sequence_number,
        "schema_id": snapshot.schema_id if snapshot.schema_id is not None else schema_id,
    })
