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
from datetime import timedelta

from parameterized import parameterized

from lakecat.catalog.catalog_config import CatalogConfig
from lakecat.catalog.catalog_exception import ConfigurationError
from lakecat.common.options import Options
from lakecat.common.options.config import (CatalogOptions, CatalogType,
                                           FileFormat)


class CatalogConfigTest(unittest.TestCase):

    def test_nessie_options(self):
        config = CatalogConfig.from_options({
            "catalog.type": "nessie",
            "catalog.warehouse": "s3://bucket/warehouse",
            "catalog.server-uri": "http://localhost:19120/api/v2",
            "catalog.namespace": "tpch",
            "catalog.nessie.ref": "dev",
            "catalog.commit.retry-attempts": "7",
            "catalog.commit.timeout": "30 s",
            "catalog.nessie.author": "loader",
        })
        self.assertEqual(config.catalog_type, CatalogType.NESSIE)
        self.assertEqual(config.warehouse, "s3://bucket/warehouse")
        self.assertEqual(config.namespace, ("tpch",))
        self.assertEqual(config.ref, "dev")
        self.assertEqual(config.commit_retry_attempts, 7)
        self.assertEqual(config.commit_timeout, timedelta(seconds=30))
        self.assertEqual(config.default_file_format, FileFormat.PARQUET)
        self.assertEqual(config.property("catalog.nessie.author"), "loader")

    def test_defaults(self):
        config = CatalogConfig.from_options({"catalog.type": "hadoop", "catalog.warehouse": "/tmp/wh"})
        self.assertEqual(config.commit_retry_attempts, 4)
        self.assertEqual(config.commit_timeout, timedelta(seconds=60))
        self.assertEqual(config.commit_min_retry_wait, timedelta(milliseconds=100))
        self.assertEqual(config.commit_max_retry_wait, timedelta(seconds=60))
        self.assertEqual(config.request_timeout, timedelta(seconds=180))
        self.assertEqual(config.ref, "main")
        self.assertIsNone(config.namespace)

    def test_filesystem_alias(self):
        config = CatalogConfig.from_options({"catalog.type": "filesystem", "catalog.warehouse": "/tmp/wh"})
        self.assertEqual(config.catalog_type, CatalogType.HADOOP)

    def test_fallback_keys(self):
        config = CatalogConfig.from_options({
            "iceberg.catalog.type": "NESSIE",
            "iceberg.catalog.warehouse": "file:///tmp/wh",
            "iceberg.nessie.uri": "https://nessie.example.com/api/v1",
            "iceberg.file-format": "orc",
        })
        self.assertEqual(config.catalog_type, CatalogType.NESSIE)
        self.assertEqual(config.server_uri, "https://nessie.example.com/api/v1")
        self.assertEqual(config.default_file_format, FileFormat.ORC)
        self.assertEqual(config.properties, ())

    def test_equal_configs_are_interchangeable_keys(self):
        options = {"catalog.type": "hive", "catalog.warehouse": "/tmp/wh",
                   "catalog.server-uri": "sqlite:///metastore.db", "b": "2", "a": "1"}
        first = CatalogConfig.from_options(options)
        second = CatalogConfig.from_options(dict(reversed(list(options.items()))))
        self.assertEqual(first, second)
        self.assertEqual(hash(first), hash(second))
        self.assertEqual({first: 1}[second], 1)

        other = CatalogConfig.from_options(dict(options, b="3"))
        self.assertNotEqual(first, other)

    def test_token_is_not_printed(self):
        config = CatalogConfig.from_options({"catalog.type": "rest", "catalog.server-uri": "http://localhost:8181",
                                             "catalog.token": "secret-token"})
        self.assertNotIn("secret-token", repr(config))
        self.assertNotIn("secret-token", str(config))

    def test_round_trip_through_options(self):
        config = CatalogConfig.from_options({
            "catalog.type": "glue",
            "catalog.warehouse": "s3://bucket/wh",
            "catalog.glue.region": "eu-west-1",
            "catalog.commit.min-retry-wait": "250 ms",
        })
        options = config.to_options()
        self.assertEqual(options.get(CatalogOptions.GLUE_REGION), "eu-west-1")
        self.assertEqual(CatalogConfig.from_options(options.to_map()), config)

    @parameterized.expand([
        ("missing_type", {"catalog.warehouse": "/tmp/wh"}, "catalog.type"),
        ("unknown_type", {"catalog.type": "delta", "catalog.warehouse": "/tmp/wh"}, "catalog.type"),
        ("missing_warehouse", {"catalog.type": "hadoop"}, "catalog.warehouse"),
        ("bad_warehouse_scheme", {"catalog.type": "hadoop", "catalog.warehouse": "gs://bucket/wh"},
         "catalog.warehouse"),
        ("s3_without_bucket", {"catalog.type": "glue", "catalog.warehouse": "s3:///wh"}, "catalog.warehouse"),
        ("missing_server_uri", {"catalog.type": "nessie", "catalog.warehouse": "/tmp/wh"}, "catalog.server-uri"),
        ("bad_server_uri", {"catalog.type": "rest", "catalog.server-uri": "localhost:8181"}, "catalog.server-uri"),
        ("bad_hive_uri", {"catalog.type": "hive", "catalog.warehouse": "/tmp/wh",
                          "catalog.server-uri": "not a url"}, "catalog.server-uri"),
        ("empty_namespace_segment", {"catalog.type": "hadoop", "catalog.warehouse": "/tmp/wh",
                                     "catalog.namespace": "a..b"}, "catalog.namespace"),
        ("bad_retry_attempts", {"catalog.type": "hadoop", "catalog.warehouse": "/tmp/wh",
                                "catalog.commit.retry-attempts": "many"}, "catalog.commit.retry-attempts"),
        ("negative_retry_attempts", {"catalog.type": "hadoop", "catalog.warehouse": "/tmp/wh",
                                     "catalog.commit.retry-attempts": "-1"}, "catalog.commit.retry-attempts"),
        ("zero_timeout", {"catalog.type": "hadoop", "catalog.warehouse": "/tmp/wh",
                          "catalog.commit.timeout": "0 s"}, "catalog.commit.timeout"),
        ("bad_duration", {"catalog.type": "hadoop", "catalog.warehouse": "/tmp/wh",
                          "catalog.request-timeout": "soon"}, "catalog.request-timeout"),
        ("min_wait_above_max", {"catalog.type": "hadoop", "catalog.warehouse": "/tmp/wh",
                                "catalog.commit.min-retry-wait": "2 min",
                                "catalog.commit.max-retry-wait": "1 min"}, "catalog.commit.min-retry-wait"),
        ("unknown_token_provider", {"catalog.type": "rest", "catalog.server-uri": "http://localhost:8181",
                                    "catalog.token.provider": "kerberos"}, "catalog.token.provider"),
        ("bad_file_format", {"catalog.type": "hadoop", "catalog.warehouse": "/tmp/wh",
                             "catalog.default-file-format": "csv"}, "catalog.default-file-format"),
    ])
    def test_invalid_options(self, _, options, key):
        with self.assertRaises(ConfigurationError) as context:
            CatalogConfig.from_options(options)
        self.assertEqual(context.exception.key, key)

    def test_rest_does_not_require_warehouse(self):
        config = CatalogConfig.from_options({"catalog.type": "rest", "catalog.server-uri": "http://localhost:8181"})
        self.assertIsNone(config.warehouse)

    def test_header_prefix(self):
        options = Options({"header.X-Tenant": "acme", "header.X-Trace": "1", "catalog.type": "rest"})
        self.assertEqual(options.with_prefix(CatalogOptions.HEADER_PREFIX), {"X-Tenant": "acme", "X-Trace": "1"})


if __name__ == '__main__':
    unittest.main()
