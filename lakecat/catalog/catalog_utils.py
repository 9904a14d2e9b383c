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

import re
from contextlib import contextmanager
from typing import Optional

from lakecat.api.rest_exception import (ForbiddenException,
                                        NotAuthorizedException,
                                        RequestTimeoutException,
                                        RESTException,
                                        ServiceFailureException,
                                        ServiceUnavailableException)
from lakecat.catalog.catalog_exception import (AccessError,
                                               BackendTimeoutError,
                                               BackendUnavailableError,
                                               CatalogError)
from lakecat.common.identifier import TableIdentifier

_METADATA_FILE_VERSION = re.compile(r'(?:^|/)(\d+)-[^/]*\.metadata\.json$')


class CatalogUtils:

    @staticmethod
    @contextmanager
    def io_errors(catalog_type, identifier: Optional[TableIdentifier], action: str):
        """Translates filesystem failures into catalog errors, chaining the original."""
        try:
            yield
        except PermissionError as e:
            raise AccessError(f"Permission denied while {action}: {e}", catalog_type, identifier) from e
        except OSError as e:
            raise BackendUnavailableError(f"I/O failure while {action}: {e}", catalog_type, identifier) from e

    @staticmethod
    @contextmanager
    def rest_errors(catalog_type, identifier: Optional[TableIdentifier], action: str):
        """Translates HTTP failures left unhandled by the caller into catalog errors."""
        try:
            yield
        except RequestTimeoutException as e:
            raise BackendTimeoutError(f"Timed out while {action}: {e}", catalog_type, identifier) from e
        except (NotAuthorizedException, ForbiddenException) as e:
            raise AccessError(f"Access denied while {action}: {e}", catalog_type, identifier) from e
        except (ServiceUnavailableException, ServiceFailureException) as e:
            raise BackendUnavailableError(f"Server failure while {action}: {e}", catalog_type, identifier) from e
        except RESTException as e:
            raise CatalogError(f"Request failed while {action}: {e}", catalog_type) from e

    @staticmethod
    def parse_metadata_file_version(metadata_location: Optional[str]) -> int:
        """
        Version encoded in a metadata file name such as
        "00003-5f0c...metadata.json", or -1 when there is none.
        """
        if not metadata_location:
            return -1
        match = _METADATA_FILE_VERSION.search(metadata_location)
        return int(match.group(1)) if match else -1
