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

import unittest

import pyarrow as pa
from pyiceberg.transforms import (BucketTransform, IdentityTransform,
                                  TruncateTransform, VoidTransform)
from pyiceberg.types import DateType, DecimalType

from lakecat.schema.partition_spec import (UNPARTITIONED_SPEC,
                                           PartitionSpecBuilder,
                                           parse_transform,
                                           same_partitioning, with_spec_id)
from lakecat.schema.schema import (field_ids, find_field, find_field_by_name,
                                   from_pyarrow_schema, same_schema,
                                   to_pyarrow_schema, with_schema_id)
from lakecat.tests.fixtures import (ORDERS_PA_SCHEMA, nested_schema,
                                    orders_schema)


class SchemaTest(unittest.TestCase):

    def test_from_pyarrow_schema(self):
        schema = orders_schema()
        self.assertEqual([f.field_id for f in schema.fields], [1, 2, 3, 4, 5, 6])
        self.assertEqual(find_field_by_name(schema, "o_totalprice").field_type, DecimalType(15, 2))
        self.assertEqual(find_field_by_name(schema, "o_orderdate").field_type, DateType())
        self.assertTrue(find_field(schema, 1).required)
        self.assertEqual(list(schema.identifier_field_ids), [1])
        self.assertEqual(schema.highest_field_id, 6)

    def test_identifier_field_must_be_required(self):
        with self.assertRaises(ValueError):
            from_pyarrow_schema(ORDERS_PA_SCHEMA, identifier_fields=["o_custkey"])
        with self.assertRaises(ValueError):
            from_pyarrow_schema(ORDERS_PA_SCHEMA, identifier_fields=["missing"])

    def test_nested_ids(self):
        schema = nested_schema()
        self.assertEqual(sorted(field_ids(schema)), list(range(1, 10)))
        self.assertEqual(find_field_by_name(schema, "location.lat").field_id, 5)
        self.assertEqual(find_field(schema, 7).name, "element")
        self.assertIsNone(find_field(schema, 42))
        self.assertIsNone(find_field_by_name(schema, "location.altitude"))

    def test_pyarrow_conversion_keeps_ids(self):
        pa_schema = to_pyarrow_schema(nested_schema())
        self.assertEqual(pa_schema.field("id").metadata[b'PARQUET:field_id'], b'1')
        self.assertFalse(pa_schema.field("id").nullable)
        self.assertTrue(pa.types.is_map(pa_schema.field("attributes").type))

    def test_nested_pyarrow_schema_gets_fresh_ids(self):
        converted = from_pyarrow_schema(to_pyarrow_schema(nested_schema()), identifier_fields=["id"])
        self.assertEqual([f.field_id for f in converted.fields], [1, 2, 3, 4])
        self.assertEqual(sorted(field_ids(converted)), list(range(1, 10)))
        self.assertEqual(find_field_by_name(converted, "location.lat").field_id, 5)
        self.assertEqual(list(converted.identifier_field_ids), [1])

    def test_same_schema_ignores_id(self):
        renumbered = with_schema_id(nested_schema(), 5)
        self.assertEqual(renumbered.schema_id, 5)
        self.assertTrue(same_schema(nested_schema(), renumbered))
        self.assertFalse(same_schema(nested_schema(), orders_schema()))


class PartitionSpecTest(unittest.TestCase):

    def test_builder(self):
        schema = orders_schema()
        spec = PartitionSpecBuilder(schema).month("o_orderdate").bucket("o_custkey", 16) \
            .truncate("o_comment", 4).identity("o_orderstatus").build()
        self.assertEqual([f.field_id for f in spec.fields], [1000, 1001, 1002, 1003])
        self.assertEqual([f.name for f in spec.fields],
                         ["o_orderdate_month", "o_custkey_bucket_16", "o_comment_truncate_4", "o_orderstatus"])
        self.assertEqual(str(spec.fields[1].transform), "bucket[16]")
        self.assertEqual(spec.fields[0].source_id, 5)
        self.assertEqual(spec.last_assigned_field_id, 1003)

    def test_duplicate_name(self):
        with self.assertRaises(ValueError):
            PartitionSpecBuilder(orders_schema()).day("o_orderdate").add("o_custkey", "identity", "o_orderdate_day")

    def test_unpartitioned(self):
        self.assertTrue(UNPARTITIONED_SPEC.is_unpartitioned())
        self.assertEqual(UNPARTITIONED_SPEC.last_assigned_field_id, 999)

    def test_parse_transform(self):
        self.assertEqual(parse_transform("Bucket[ 8 ]"), BucketTransform(8))
        self.assertEqual(parse_transform("truncate[10]"), TruncateTransform(10))
        self.assertEqual(parse_transform("identity"), IdentityTransform())
        self.assertEqual(parse_transform("void"), VoidTransform())
        with self.assertRaises(ValueError):
            parse_transform("zorder")
        with self.assertRaises(ValueError):
            parse_transform("truncate[0]")

    def test_invalid_transforms(self):
        schema = orders_schema()
        with self.assertRaises(ValueError):
            PartitionSpecBuilder(schema).hour("o_orderdate")
        with self.assertRaises(ValueError):
            PartitionSpecBuilder(schema).bucket("o_custkey", 0)
        with self.assertRaises(ValueError):
            PartitionSpecBuilder(schema).identity("missing")
        with self.assertRaises(ValueError):
            PartitionSpecBuilder(nested_schema()).identity("location")

    def test_same_partitioning_ignores_spec_id(self):
        spec = PartitionSpecBuilder(orders_schema()).day("o_orderdate").build()
        renumbered = with_spec_id(spec, 4)
        self.assertEqual(renumbered.spec_id, 4)
        self.assertTrue(same_partitioning(spec, renumbered))
        self.assertFalse(same_partitioning(spec, UNPARTITIONED_SPEC))


if __name__ == '__main__':
    unittest.main()
