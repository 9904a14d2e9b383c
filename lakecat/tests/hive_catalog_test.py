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
import os
import shutil
import tempfile
import unittest

from sqlalchemy import and_, select, update

from lakecat.catalog.catalog_exception import (CorruptMetadataError,
                                               NamespaceAlreadyExistsError,
                                               NamespaceNotFoundError,
                                               TableAlreadyExistsError,
                                               TableNotFoundError)
from lakecat.catalog.hive.hive_catalog import TABLE_PARAMS, HiveCatalog
from lakecat.catalog.resource_factory import ResourceFactory
from lakecat.common.identifier import TableIdentifier
from lakecat.metadata.table_metadata_parser import TableMetadataParser
from lakecat.tests.fixtures import manifest_list, orders_schema

ORDERS = TableIdentifier.of("tpch", "orders")


class HiveCatalogTest(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp(prefix="lakecat-hive-")
        self.warehouse = os.path.join(self.temp_dir, "warehouse")
        self.options = {
            "catalog.type": "hive",
            "catalog.warehouse": self.warehouse,
            "catalog.server-uri": "sqlite:///" + os.path.join(self.temp_dir, "metastore.db"),
            "catalog.commit.min-retry-wait": "1 ms",
            "catalog.commit.max-retry-wait": "5 ms",
        }
        self.factory = ResourceFactory()
        self.catalog = self.factory.get_client(self.options)
        self.factory.create_namespace(self.options, "tpch", {"owner": "etl"})

    def tearDown(self):
        self.factory.close()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def pointer(self, key: str):
        with self.catalog.engine.connect() as conn:
            tbl_id = self.catalog._table_id(conn, ORDERS)
            return self.catalog._param(conn, tbl_id, key)

    def test_create_and_resolve(self):
        self.assertIsInstance(self.catalog, HiveCatalog)
        created = self.factory.create_table(self.options, ORDERS, orders_schema())
        self.assertEqual(created.location, self.warehouse + "/tpch.db/orders")
        self.assertTrue(os.path.exists(created.version_token))
        self.assertEqual(self.pointer("metadata_location"), created.version_token)
        self.assertEqual(self.pointer("table_type"), "ICEBERG")

        resolved = self.factory.resolve(self.options, ORDERS)
        self.assertEqual(resolved, created)
        self.assertEqual(resolved.metadata_location, created.version_token)

    def test_missing_table(self):
        with self.assertRaises(TableNotFoundError):
            self.factory.resolve(self.options, "missing.table")
        with self.assertRaises(TableNotFoundError):
            self.factory.resolve(self.options, "tpch.nested.orders")

    def test_namespaces(self):
        with self.assertRaises(NamespaceAlreadyExistsError):
            self.factory.create_namespace(self.options, "tpch")
        with self.assertRaises(NamespaceNotFoundError):
            self.factory.create_namespace(self.options, "tpch.nested")
        with self.assertRaises(NamespaceNotFoundError):
            self.factory.create_table(self.options, "tpcds.store_sales", orders_schema())
        self.factory.create_table(self.options, "tpch.orders", orders_schema())
        self.factory.create_table(self.options, "tpch.customer", orders_schema())
        self.assertEqual([t.name for t in self.factory.list_tables(self.options, "tpch")], ["customer", "orders"])
        with self.assertRaises(TableAlreadyExistsError):
            self.factory.create_table(self.options, ORDERS, orders_schema())

    def test_swap_is_conditional(self):
        base = self.factory.create_table(self.options, ORDERS, orders_schema())
        first = base.builder().append_snapshot(manifest_list(base.location, 1), snapshot_id=1).build()
        second = base.builder().append_snapshot(manifest_list(base.location, 2), snapshot_id=2).build()

        accepted = self.catalog.conditional_update(ORDERS, base.version_token, TableMetadataParser.to_json(first))
        self.assertTrue(accepted.accepted)
        self.assertIn("/metadata/00001-", accepted.current_token)
        self.assertEqual(self.pointer("previous_metadata_location"), base.version_token)

        rejected = self.catalog.conditional_update(ORDERS, base.version_token, TableMetadataParser.to_json(second))
        self.assertFalse(rejected.accepted)
        self.assertEqual(rejected.current_token, accepted.current_token)
        # the losing metadata file is removed again
        metadata_dir = os.path.join(base.location, "metadata")
        self.assertEqual(len(os.listdir(metadata_dir)), 2)

    def test_concurrent_appends(self):
        base = self.factory.create_table(self.options, ORDERS, orders_schema())
        first = base.builder().append_snapshot(manifest_list(base.location, 1), snapshot_id=1).build()
        second = base.builder().append_snapshot(manifest_list(base.location, 2), snapshot_id=2).build()
        self.factory.propose(self.options, ORDERS, base.version_token, first)
        committed = self.factory.propose(self.options, ORDERS, base.version_token, second)
        self.assertIn("/metadata/00002-", committed.version_token)
        self.assertEqual(self.factory.resolve(self.options, ORDERS).snapshot_ids(), [1, 2])

    def test_missing_metadata_file(self):
        created = self.factory.create_table(self.options, ORDERS, orders_schema())
        with self.catalog.engine.begin() as conn:
            conn.execute(update(TABLE_PARAMS).where(and_(
                TABLE_PARAMS.c.PARAM_KEY == "metadata_location",
                TABLE_PARAMS.c.PARAM_VALUE == created.version_token)).values(
                PARAM_VALUE=created.location + "/metadata/00009-gone.metadata.json"))
        with self.assertRaises(CorruptMetadataError):
            self.factory.resolve(self.options, ORDERS)

    def test_drop_table(self):
        self.factory.create_table(self.options, ORDERS, orders_schema())
        self.factory.drop_table(self.options, ORDERS)
        with self.catalog.engine.connect() as conn:
            self.assertEqual(conn.execute(select(TABLE_PARAMS)).fetchall(), [])
        with self.assertRaises(TableNotFoundError):
            self.factory.drop_table(self.options, ORDERS)


if __name__ == '__main__':
    unittest.main()
