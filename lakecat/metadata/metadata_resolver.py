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

import logging

from lakecat.catalog.catalog import Catalog
from lakecat.catalog.location_provider import LocationProvider
from lakecat.common.identifier import TableIdentifier
from lakecat.metadata.table_metadata import TableMetadata
from lakecat.metadata.table_metadata_parser import TableMetadataParser

logger = logging.getLogger(__name__)


class MetadataResolver:
    """
    Loads the current version of a table: reads the version token, fetches
    the document it names, then parses and validates it. The result carries
    the token it was read at, which is the base of any commit built on it.
    """

    @staticmethod
    def load(client: Catalog, identifier: TableIdentifier) -> TableMetadata:
        token = client.get_current_token(identifier)
        return MetadataResolver.load_version(client, identifier, token)

    @staticmethod
    def load_version(client: Catalog, identifier: TableIdentifier, token: str) -> TableMetadata:
        location = client.metadata_location(token)
        document = client.fetch_metadata_document(identifier, token)
        metadata = TableMetadataParser.parse(document, identifier, location)
        logger.debug("Loaded %s at version %s", identifier, token)
        return metadata.with_version(token, location)

    @staticmethod
    def data_location(metadata: TableMetadata) -> str:
        return LocationProvider.data_location(metadata)
