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

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

NAMESPACE_SEPARATOR = '.'


@dataclass(frozen=True)
class TableIdentifier:
    """Namespace segments plus a table name. Equal identifiers are interchangeable cache keys."""

    namespace: Tuple[str, ...]
    name: str

    def __post_init__(self):
        # accept lists and bare strings while keeping the stored value hashable
        if isinstance(self.namespace, str):
            object.__setattr__(self, 'namespace', (self.namespace,))
        else:
            object.__setattr__(self, 'namespace', tuple(self.namespace))
        if not self.name:
            raise ValueError("Table name must not be empty")
        if any(not segment for segment in self.namespace):
            raise ValueError("Namespace segments must not be empty: {}".format(self.namespace))

    @classmethod
    def of(cls, *parts: str) -> "TableIdentifier":
        if len(parts) < 1:
            raise ValueError("At least a table name is required")
        return cls(tuple(parts[:-1]), parts[-1])

    @classmethod
    def parse(cls, full_name: str, default_namespace: Optional[Sequence[str]] = None) -> "TableIdentifier":
        parts = full_name.split(NAMESPACE_SEPARATOR)
        if any(not part for part in parts):
            raise ValueError("Invalid identifier format: {}".format(full_name))
        if len(parts) == 1:
            if not default_namespace:
                raise ValueError("Identifier {} has no namespace and no default is configured".format(full_name))
            return cls(tuple(default_namespace), parts[0])
        return cls(tuple(parts[:-1]), parts[-1])

    @classmethod
    def coerce(cls, identifier: Union[str, "TableIdentifier"],
               default_namespace: Optional[Sequence[str]] = None) -> "TableIdentifier":
        if isinstance(identifier, TableIdentifier):
            return identifier
        return cls.parse(identifier, default_namespace)

    def namespace_name(self) -> str:
        return NAMESPACE_SEPARATOR.join(self.namespace)

    def get_full_name(self) -> str:
        if not self.namespace:
            return self.name
        return "{}.{}".format(self.namespace_name(), self.name)

    def __str__(self) -> str:
        return self.get_full_name()


def parse_namespace(namespace: Union[str, Sequence[str]]) -> Tuple[str, ...]:
    if isinstance(namespace, str):
        segments = tuple(namespace.split(NAMESPACE_SEPARATOR))
    else:
        segments = tuple(namespace)
    if not segments or any(not segment for segment in segments):
        raise ValueError("Invalid namespace: {}".format(namespace))
    return segments
