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

from datetime import timedelta
from enum import Enum

from lakecat.common.options.config_options import ConfigOptions


class CatalogType(Enum):
    HADOOP = "hadoop"
    NESSIE = "nessie"
    HIVE = "hive"
    GLUE = "glue"
    REST = "rest"

    def is_remote(self) -> bool:
        return self in (CatalogType.NESSIE, CatalogType.HIVE, CatalogType.REST)

    def requires_warehouse(self) -> bool:
        return self is not CatalogType.REST


class FileFormat(Enum):
    PARQUET = "PARQUET"
    ORC = "ORC"
    AVRO = "AVRO"


class S3Options:
    S3_ACCESS_KEY_ID = ConfigOptions.key("fs.s3.accessKeyId").string_type().no_default_value().with_description(
        "S3 access key ID")
    S3_ACCESS_KEY_SECRET = ConfigOptions.key("fs.s3.accessKeySecret").string_type().no_default_value().with_description(
        "S3 access key secret")
    S3_SECURITY_TOKEN = ConfigOptions.key("fs.s3.securityToken").string_type().no_default_value().with_description(
        "S3 security token")
    S3_ENDPOINT = ConfigOptions.key("fs.s3.endpoint").string_type().no_default_value().with_description("S3 endpoint")
    S3_REGION = ConfigOptions.key("fs.s3.region").string_type().no_default_value().with_description("S3 region")


class CatalogOptions:
    TYPE = ConfigOptions.key("catalog.type").enum_type(CatalogType).no_default_value().with_description(
        "Backend catalog kind").with_fallback_keys("iceberg.catalog.type")
    WAREHOUSE = ConfigOptions.key("catalog.warehouse").string_type().no_default_value().with_description(
        "Warehouse root location").with_fallback_keys("iceberg.catalog.warehouse")
    SERVER_URI = ConfigOptions.key("catalog.server-uri").string_type().no_default_value().with_description(
        "Server URI of remote catalogs").with_fallback_keys("iceberg.nessie.uri", "iceberg.rest.uri",
                                                            "iceberg.hive.metastore.uri")
    DEFAULT_FILE_FORMAT = ConfigOptions.key("catalog.default-file-format").enum_type(FileFormat).default_value(
        FileFormat.PARQUET).with_description("File format of new tables").with_fallback_keys("iceberg.file-format")
    NAMESPACE = ConfigOptions.key("catalog.namespace").string_type().no_default_value().with_description(
        "Default namespace for unqualified table names")
    TOKEN = ConfigOptions.key("catalog.token").string_type().no_default_value().with_description(
        "Authentication token").with_fallback_keys("iceberg.nessie.auth.bearer.token")
    TOKEN_PROVIDER = ConfigOptions.key("catalog.token.provider").string_type().no_default_value().with_description(
        "Token provider").with_fallback_keys("iceberg.nessie.auth.type")
    NESSIE_REF = ConfigOptions.key("catalog.nessie.ref").string_type().default_value("main").with_description(
        "Nessie reference tables are read from and committed to").with_fallback_keys("iceberg.nessie.ref")
    COMMIT_RETRY_ATTEMPTS = ConfigOptions.key("catalog.commit.retry-attempts").int_type().default_value(
        4).with_description("Number of retries after a commit conflict")
    COMMIT_TIMEOUT = ConfigOptions.key("catalog.commit.timeout").duration_type().default_value(
        timedelta(seconds=60)).with_description("Total time allowed for a commit including retries")
    COMMIT_MIN_RETRY_WAIT = ConfigOptions.key("catalog.commit.min-retry-wait").duration_type().default_value(
        timedelta(milliseconds=100)).with_description("Minimum backoff before retrying a conflicted commit")
    COMMIT_MAX_RETRY_WAIT = ConfigOptions.key("catalog.commit.max-retry-wait").duration_type().default_value(
        timedelta(seconds=60)).with_description("Maximum backoff before retrying a conflicted commit")
    REQUEST_TIMEOUT = ConfigOptions.key("catalog.request-timeout").duration_type().default_value(
        timedelta(seconds=180)).with_description("Timeout of a single backend call").with_fallback_keys(
        "iceberg.nessie.read-timeout-ms")
    GLUE_REGION = ConfigOptions.key("catalog.glue.region").string_type().no_default_value().with_description(
        "AWS region of the Glue catalog").with_fallback_keys("hive.metastore.glue.region")
    GLUE_CATALOG_ID = ConfigOptions.key("catalog.glue.catalog-id").string_type().no_default_value().with_description(
        "AWS account id owning the Glue catalog").with_fallback_keys("hive.metastore.glue.catalogid")
    GLUE_ENDPOINT = ConfigOptions.key("catalog.glue.endpoint").string_type().no_default_value().with_description(
        "Glue endpoint override").with_fallback_keys("hive.metastore.glue.endpoint-url")
    PREFIX = ConfigOptions.key("prefix").string_type().no_default_value().with_description("REST path prefix")

    HEADER_PREFIX = "header."
