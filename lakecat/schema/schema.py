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

from typing import Iterable, Iterator, List, Optional

import pyarrow as pa
from pyiceberg.io.pyarrow import (_pyarrow_to_schema_without_ids,
                                  schema_to_pyarrow)
from pyiceberg.schema import Schema, assign_fresh_schema_ids
from pyiceberg.types import ListType, MapType, NestedField, StructType

INITIAL_SCHEMA_ID = 0


def walk_fields(fields: Iterable[NestedField]) -> Iterator[NestedField]:
    """Every field below fields, depth first, list elements and map keys and values included."""
    for nested_field in fields:
        yield nested_field
        field_type = nested_field.field_type
        if isinstance(field_type, StructType):
            yield from walk_fields(field_type.fields)
        elif isinstance(field_type, ListType):
            yield from walk_fields((field_type.element_field,))
        elif isinstance(field_type, MapType):
            yield from walk_fields((field_type.key_field, field_type.value_field))


def field_ids(schema: Schema) -> List[int]:
    return [f.field_id for f in walk_fields(schema.fields)]


def find_field(schema: Schema, field_id: int) -> Optional[NestedField]:
    return next((f for f in walk_fields(schema.fields) if f.field_id == field_id), None)


def find_field_by_name(schema: Schema, name: str) -> Optional[NestedField]:
    """Looks up a field by its dotted path, e.g. "address.zip"."""
    try:
        return schema.find_field(name)
    except ValueError:
        return None


def with_schema_id(schema: Schema, schema_id: int) -> Schema:
    return Schema(*schema.fields, schema_id=schema_id, identifier_field_ids=list(schema.identifier_field_ids))


def same_schema(left: Schema, right: Schema) -> bool:
    """Equality of the columns and identifier fields, ignoring the schema id."""
    return tuple(left.fields) == tuple(right.fields) \
        and list(left.identifier_field_ids) == list(right.identifier_field_ids)


def to_pyarrow_schema(schema: Schema) -> pa.Schema:
    return schema_to_pyarrow(schema)


def from_pyarrow_schema(pa_schema: pa.Schema, identifier_fields: Optional[List[str]] = None,
                        schema_id: int = INITIAL_SCHEMA_ID) -> Schema:
    """
    Converts a pyarrow schema, assigning fresh field ids. identifier_fields
    name top-level columns that must not be nullable.
    """
    fresh = assign_fresh_schema_ids(_pyarrow_to_schema_without_ids(pa_schema))
    identifier_field_ids = []
    for name in identifier_fields or []:
        match = next((f for f in fresh.fields if f.name == name), None)
        if match is None:
            raise ValueError(f"Identifier field '{name}' is not a top-level column")
        if not match.required:
            raise ValueError(f"Identifier field '{name}' must be required")
        identifier_field_ids.append(match.field_id)
    return Schema(*fresh.fields, schema_id=schema_id, identifier_field_ids=identifier_field_ids)
