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

from typing import Dict, Sequence
from urllib.parse import quote, unquote

from lakecat.common.options import Options

# unit separator, joins multi-level namespaces inside a single path segment
NAMESPACE_SEPARATOR = "\x1f"


class RESTUtil:
    @staticmethod
    def encode_string(value: str) -> str:
        return quote(value, safe="")

    @staticmethod
    def decode_string(encoded: str) -> str:
        """Decode URL-encoded string"""
        return unquote(encoded)

    @staticmethod
    def encode_namespace(namespace: Sequence[str]) -> str:
        return RESTUtil.encode_string(NAMESPACE_SEPARATOR.join(namespace))

    @staticmethod
    def decode_namespace(encoded: str) -> tuple:
        return tuple(RESTUtil.decode_string(encoded).split(NAMESPACE_SEPARATOR))

    @staticmethod
    def extract_prefix_map(
            options: Options, prefix: str) -> Dict[str, str]:
        return options.with_prefix(prefix)
