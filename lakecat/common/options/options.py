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

from typing import Dict, Optional

from lakecat.common.options.config_option import ConfigOption
from lakecat.common.options.options_utils import OptionsUtils


class Options:
    def __init__(self, data: Optional[dict] = None):
        self.data = dict(data) if data else {}

    @classmethod
    def from_none(cls):
        return cls({})

    def to_map(self) -> dict:
        return self.data

    def _raw(self, key: ConfigOption):
        for candidate in (key.key(),) + key.fallback_keys():
            if candidate in self.data and self.data[candidate] is not None:
                return self.data[candidate]
        return None

    def get(self, key: ConfigOption, default=None):
        """
        Get the value for the given ConfigOption, with type conversion.
        Args:
            key: The ConfigOption to get the value for
            default: The default value to return if the ConfigOption is not found
        Returns:
            The converted value according to the ConfigOption's type, or default if not found
        """
        raw_value = self._raw(key)
        if raw_value is not None:
            return OptionsUtils.convert_value(raw_value, key.get_clazz())
        return default if default is not None else key.default_value()

    def get_raw(self, key: ConfigOption) -> Optional[str]:
        raw_value = self._raw(key)
        return None if raw_value is None else str(raw_value)

    def set(self, key: ConfigOption, value):
        self.data[key.key()] = OptionsUtils.convert_to_string(value)

    def contains(self, key: ConfigOption) -> bool:
        return self._raw(key) is not None

    def with_prefix(self, prefix: str) -> Dict[str, str]:
        """Returns the entries whose key starts with prefix, with the prefix stripped."""
        return {k[len(prefix):]: str(v) for k, v in self.data.items() if k.startswith(prefix)}

    def copy(self) -> 'Options':
        return Options(dict(self.data))
