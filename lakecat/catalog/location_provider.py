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

from typing import TYPE_CHECKING, Mapping

from lakecat.catalog.catalog_exception import ConfigurationError
from lakecat.common.identifier import TableIdentifier
from lakecat.common.options.config import CatalogOptions, CatalogType

if TYPE_CHECKING:
    from lakecat.catalog.catalog_config import CatalogConfig
    from lakecat.metadata.table_metadata import TableMetadata

DB_SUFFIX = ".db"
DATA_DIR = "data"
METADATA_DIR = "metadata"

WRITE_DATA_PATH = "write.data.path"
WRITE_METADATA_PATH = "write.metadata.path"


class LocationProvider:
    """
    Derives table, data and metadata locations. The result depends only on
    the catalog config, the identifier and the table metadata, so it is the
    same for every reader of the same version.

    Table locations by catalog type:
      hadoop             <warehouse>/<ns...>/<table>
      hive, glue, rest   <warehouse>/<ns...>.db/<table>
      nessie             <warehouse>/<ns...>/<table>_<table uuid hex>
    """

    def __init__(self, config: "CatalogConfig"):
        self.catalog_type = config.catalog_type
        self.warehouse = config.warehouse.rstrip("/") if config.warehouse else None

    def namespace_location(self, namespace) -> str:
        if self.warehouse is None:
            raise ConfigurationError(CatalogOptions.WAREHOUSE.key(),
                                     f"the {self.catalog_type.value} catalog needs a warehouse to place "
                                     f"{'.'.join(namespace)} in")
        path = "/".join(namespace)
        if self.catalog_type in (CatalogType.HADOOP, CatalogType.NESSIE):
            return f"{self.warehouse}/{path}"
        return f"{self.warehouse}/{path}{DB_SUFFIX}"

    def table_location(self, identifier: TableIdentifier, table_uuid: str) -> str:
        namespace_location = self.namespace_location(identifier.namespace)
        if self.catalog_type is CatalogType.NESSIE:
            # tables may be dropped and recreated on other branches, so each gets its own directory
            return "{}/{}_{}".format(namespace_location, identifier.name, table_uuid.replace("-", ""))
        return f"{namespace_location}/{identifier.name}"

    @staticmethod
    def data_location(metadata: "TableMetadata") -> str:
        configured = metadata.properties.get(WRITE_DATA_PATH)
        if configured:
            return configured.rstrip("/")
        return f"{metadata.location}/{DATA_DIR}"

    @staticmethod
    def metadata_location(table_location: str, properties: Mapping[str, str]) -> str:
        configured = properties.get(WRITE_METADATA_PATH)
        if configured:
            return configured.rstrip("/")
        return f"{table_location.rstrip('/')}/{METADATA_DIR}"
