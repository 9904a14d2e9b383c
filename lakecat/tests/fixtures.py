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

import pyarrow as pa
from pyiceberg.partitioning import PartitionSpec
from pyiceberg.schema import Schema
from pyiceberg.types import (DoubleType, IntegerType, ListType, LongType,
                             MapType, NestedField, StringType, StructType)

from lakecat.schema.partition_spec import PartitionSpecBuilder
from lakecat.schema.schema import from_pyarrow_schema

ORDERS_PA_SCHEMA = pa.schema([
    pa.field('o_orderkey', pa.int64(), nullable=False),
    pa.field('o_custkey', pa.int64()),
    pa.field('o_orderstatus', pa.string()),
    pa.field('o_totalprice', pa.decimal128(15, 2)),
    pa.field('o_orderdate', pa.date32()),
    pa.field('o_comment', pa.string()),
])


def orders_schema() -> Schema:
    return from_pyarrow_schema(ORDERS_PA_SCHEMA, identifier_fields=['o_orderkey'])


def orders_spec(schema: Schema) -> PartitionSpec:
    return PartitionSpecBuilder(schema).month('o_orderdate').build()


def nested_schema() -> Schema:
    return Schema(
        NestedField(1, "id", LongType(), required=True),
        NestedField(2, "location", StructType(
            NestedField(5, "lat", DoubleType(), required=False),
            NestedField(6, "long", DoubleType(), required=False),
        ), required=False),
        NestedField(3, "tags", ListType(7, StringType(), element_required=False), required=False),
        NestedField(4, "attributes", MapType(8, StringType(), 9, IntegerType(), value_required=False),
                    required=False),
        identifier_field_ids=[1],
    )


def manifest_list(location: str, n: int) -> str:
    return f"{location}/metadata/snap-{n}.avro"
