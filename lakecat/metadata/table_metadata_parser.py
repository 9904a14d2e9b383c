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
from typing import Any, Dict, Optional

from pyiceberg.table.metadata import TableMetadataV2

from lakecat.catalog.catalog_exception import CorruptMetadataError
from lakecat.common.identifier import TableIdentifier
from lakecat.metadata.table_metadata import (SUPPORTED_FORMAT_VERSION,
                                             TableMetadata)
from lakecat.schema.schema import field_ids, find_field

FORMAT_VERSION = "format-version"
REQUIRED_FIELDS = (
    FORMAT_VERSION,
    "table-uuid",
    "location",
    "last-sequence-number",
    "last-updated-ms",
    "last-column-id",
    "schemas",
    "current-schema-id",
    "partition-specs",
    "default-spec-id",
    "last-partition-id",
)
KNOWN_FIELDS = frozenset(info.alias or name for name, info in TableMetadataV2.model_fields.items())


class TableMetadataParser:
    """
    Reads and writes table metadata documents in the Iceberg v2 JSON layout.
    Refs, sort orders, statistics and top-level keys unknown to the model
    survive a read followed by a write.
    """

    @staticmethod
    def to_dict(metadata: TableMetadata) -> Dict[str, Any]:
        return metadata.as_dict()

    @staticmethod
    def to_json(metadata: TableMetadata, indent: Optional[int] = None) -> bytes:
        return json.dumps(TableMetadataParser.to_dict(metadata), indent=indent).encode('utf-8')

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> TableMetadata:
        for key in REQUIRED_FIELDS:
            if key not in data:
                raise KeyError(key)
        format_version = int(data[FORMAT_VERSION])
        if format_version != SUPPORTED_FORMAT_VERSION:
            raise ValueError(f"Unsupported format version: {format_version}")
        document = TableMetadataV2.model_validate(data)
        extra_fields = {k: v for k, v in data.items() if k not in KNOWN_FIELDS}
        return TableMetadata(document, extra_fields)

    @staticmethod
    def parse(document: bytes, identifier: Optional[TableIdentifier] = None,
              location: Optional[str] = None) -> TableMetadata:
        """
        Parses and validates a metadata document. Any parse failure or broken
        invariant raises CorruptMetadataError carrying identifier and location.
        """
        try:
            data = json.loads(document)
        except (ValueError, UnicodeDecodeError) as e:
            raise CorruptMetadataError(f"invalid JSON: {e}", identifier, location) from e
        if not isinstance(data, dict):
            raise CorruptMetadataError("document is not a JSON object", identifier, location)
        try:
            metadata = TableMetadataParser.from_dict(data)
        except KeyError as e:
            raise CorruptMetadataError(f"missing required field {e}", identifier, location) from e
        except (ValueError, TypeError, AttributeError) as e:
            raise CorruptMetadataError(str(e), identifier, location) from e
        TableMetadataParser.validate(metadata, identifier, location)
        return metadata

    @staticmethod
    def validate(metadata: TableMetadata, identifier: Optional[TableIdentifier] = None,
                 location: Optional[str] = None) -> None:
        def corrupt(message: str):
            return CorruptMetadataError(message, identifier, location)

        if not metadata.schemas:
            raise corrupt("no schemas")
        schema_ids = [s.schema_id for s in metadata.schemas]
        if len(set(schema_ids)) != len(schema_ids):
            raise corrupt(f"duplicate schema ids {schema_ids}")
        highest_column_id = 0
        for schema in metadata.schemas:
            schema_field_ids = field_ids(schema)
            if len(set(schema_field_ids)) != len(schema_field_ids):
                raise corrupt(f"duplicate field ids in schema {schema.schema_id}")
            highest_column_id = max(highest_column_id, max(schema_field_ids, default=0))
            for identifier_field_id in schema.identifier_field_ids:
                if find_field(schema, identifier_field_id) is None:
                    raise corrupt(f"identifier field {identifier_field_id} not in schema {schema.schema_id}")
        if metadata.last_column_id < highest_column_id:
            raise corrupt(f"last-column-id {metadata.last_column_id} is lower than the highest "
                          f"assigned field id {highest_column_id}")
        current_schema = metadata.schema_by_id(metadata.current_schema_id)
        if current_schema is None:
            raise corrupt(f"current schema {metadata.current_schema_id} does not exist")

        spec_ids = [s.spec_id for s in metadata.partition_specs]
        if len(set(spec_ids)) != len(spec_ids):
            raise corrupt(f"duplicate partition spec ids {spec_ids}")
        default_spec = metadata.spec_by_id(metadata.default_spec_id)
        if default_spec is None:
            raise corrupt(f"default partition spec {metadata.default_spec_id} does not exist")
        for spec in metadata.partition_specs:
            partition_field_ids = [f.field_id for f in spec.fields]
            if len(set(partition_field_ids)) != len(partition_field_ids):
                raise corrupt(f"duplicate partition field ids in spec {spec.spec_id}")
            if partition_field_ids and max(partition_field_ids) > metadata.last_partition_id:
                raise corrupt(f"partition field id above last-partition-id {metadata.last_partition_id}")
        for partition_field in default_spec.fields:
            if find_field(current_schema, partition_field.source_id) is None:
                raise corrupt(f"partition field {partition_field.name} references column "
                              f"{partition_field.source_id} missing from the current schema")

        snapshots_by_id = {}
        for snapshot in metadata.snapshots:
            if snapshot.snapshot_id in snapshots_by_id:
                raise corrupt(f"duplicate snapshot id {snapshot.snapshot_id}")
            snapshots_by_id[snapshot.snapshot_id] = snapshot
            if snapshot.sequence_number > metadata.last_sequence_number:
                raise corrupt(f"snapshot {snapshot.snapshot_id} has sequence number {snapshot.sequence_number} "
                              f"above last-sequence-number {metadata.last_sequence_number}")
        for snapshot in metadata.snapshots:
            # a missing parent was expired
            parent = snapshots_by_id.get(snapshot.parent_snapshot_id)
            if parent is not None and parent.sequence_number >= snapshot.sequence_number:
                raise corrupt(f"snapshot {snapshot.snapshot_id} does not have a higher sequence number "
                              f"than its parent {parent.snapshot_id}")
        if metadata.current_snapshot_id is not None and metadata.current_snapshot_id not in snapshots_by_id:
            raise corrupt(f"current snapshot {metadata.current_snapshot_id} is not among the snapshots")
