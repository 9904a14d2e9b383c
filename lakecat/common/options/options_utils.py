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
from datetime import timedelta
from enum import Enum
from typing import Any, Type

_DURATION_PATTERN = re.compile(r'^\s*(\d+(?:\.\d+)?)\s*([a-zA-Z]*)\s*$')

_DURATION_UNITS = {
    '': 'milliseconds',
    'ms': 'milliseconds',
    'milli': 'milliseconds',
    'millis': 'milliseconds',
    'millisecond': 'milliseconds',
    'milliseconds': 'milliseconds',
    's': 'seconds',
    'sec': 'seconds',
    'secs': 'seconds',
    'second': 'seconds',
    'seconds': 'seconds',
    'm': 'minutes',
    'min': 'minutes',
    'minute': 'minutes',
    'minutes': 'minutes',
    'h': 'hours',
    'hour': 'hours',
    'hours': 'hours',
    'd': 'days',
    'day': 'days',
    'days': 'days',
}


class OptionsUtils:
    """Utility methods for options conversion and validation."""

    @staticmethod
    def convert_value(value: Any, target_type: Type) -> Any:
        """
        Convert a value to the target type.

        Args:
            value: The value to convert
            target_type: The target type to convert to

        Returns:
            The converted value

        Raises:
            ValueError: If the conversion is not possible
        """
        if value is None:
            return None

        if isinstance(value, target_type) and not (target_type == int and isinstance(value, bool)):
            return value

        try:
            if issubclass(target_type, Enum):
                return OptionsUtils.convert_to_enum(value, target_type)
        except TypeError:
            pass

        if target_type == str:
            return OptionsUtils.convert_to_string(value)
        elif target_type == int:
            return OptionsUtils.convert_to_int(value)
        elif target_type == timedelta:
            return OptionsUtils.convert_to_duration(value)
        else:
            raise ValueError(f"Unsupported type: {target_type}")

    @staticmethod
    def convert_to_string(value: Any) -> str:
        if isinstance(value, timedelta):
            return f"{int(value.total_seconds() * 1000)} ms"
        if isinstance(value, Enum):
            return str(value.value)
        return str(value)

    @staticmethod
    def convert_to_int(value: Any) -> int:
        if isinstance(value, bool):
            raise ValueError(f"Cannot convert boolean '{value}' to int")
        if isinstance(value, int):
            return value
        if isinstance(value, str):
            return int(value.strip())
        if isinstance(value, float) and value.is_integer():
            return int(value)
        raise ValueError(f"Cannot convert {type(value)} to int")

    @staticmethod
    def convert_to_duration(value: Any) -> timedelta:
        """
        Parse a duration such as "30 s", "100ms", "2 min" or a bare number of
        milliseconds.
        """
        if isinstance(value, timedelta):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return timedelta(milliseconds=value)
        if isinstance(value, str):
            match = _DURATION_PATTERN.match(value)
            if match:
                amount, unit = match.groups()
                unit_name = _DURATION_UNITS.get(unit.lower())
                if unit_name is not None:
                    return timedelta(**{unit_name: float(amount)})
            raise ValueError(f"Cannot parse duration '{value}'")
        raise ValueError(f"Cannot convert {type(value)} to duration")

    @staticmethod
    def convert_to_enum(value: Any, enum_class: Type[Enum]) -> Enum:
        if isinstance(value, enum_class):
            return value

        if isinstance(value, str):
            value_lower = value.lower().strip()
            for enum_member in enum_class:
                if str(enum_member.value).lower() == value_lower:
                    return enum_member
            try:
                return enum_class[value.strip().upper()]
            except KeyError:
                raise ValueError(
                    f"Cannot convert '{value}' to {enum_class.__name__}. "
                    f"Valid values: {[e.value for e in enum_class]}"
                )
        raise ValueError(f"Cannot convert {type(value)} to {enum_class.__name__}")
