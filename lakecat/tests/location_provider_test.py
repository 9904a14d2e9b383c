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

from parameterized import parameterized

from lakecat.catalog.catalog_config import CatalogConfig
from lakecat.catalog.catalog_exception import ConfigurationError
from lakecat.catalog.location_provider import LocationProvider
from lakecat.common.identifier import TableIdentifier
from lakecat.common.options.config import CatalogType

TABLE_UUID = "9c12d441-03fe-4693-9a96-a0705ddf69c1"


class LocationProviderTest(unittest.TestCase):

    @parameterized.expand([
        (CatalogType.HADOOP, "s3://bucket/wh/tpch/sf1/orders"),
        (CatalogType.HIVE, "s3://bucket/wh/tpch/sf1.db/orders"),
        (CatalogType.GLUE, "s3://bucket/wh/tpch/sf1.db/orders"),
        (CatalogType.NESSIE, "s3://bucket/wh/tpch/sf1/orders_9c12d44103fe46939a96a0705ddf69c1"),
    ])
    def test_table_location(self, catalog_type, expected):
        provider = LocationProvider(CatalogConfig(catalog_type, warehouse="s3://bucket/wh/",
                                                  server_uri=self._server_uri(catalog_type)))
        identifier = TableIdentifier.of("tpch", "sf1", "orders")
        self.assertEqual(provider.table_location(identifier, TABLE_UUID), expected)

    def test_missing_warehouse(self):
        provider = LocationProvider(CatalogConfig(CatalogType.REST, server_uri="http://localhost:8181"))
        with self.assertRaises(ConfigurationError) as cm:
            provider.namespace_location(("tpch",))
        self.assertEqual(cm.exception.key, "catalog.warehouse")
        self.assertIn("tpch", cm.exception.reason)
        with self.assertRaises(ConfigurationError):
            provider.table_location(TableIdentifier.of("tpch", "orders"), TABLE_UUID)

    def test_metadata_location(self):
        self.assertEqual(LocationProvider.metadata_location("s3://bucket/wh/orders/", {}),
                         "s3://bucket/wh/orders/metadata")
        self.assertEqual(LocationProvider.metadata_location("s3://bucket/wh/orders",
                                                            {"write.metadata.path": "s3://other/meta/"}),
                         "s3://other/meta")

    @staticmethod
    def _server_uri(catalog_type):
        if catalog_type is CatalogType.HIVE:
            return "sqlite://"
        if catalog_type is CatalogType.NESSIE:
            return "http://localhost:19120/api"
        return None


if __name__ == '__main__':
    unittest.main()
