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

import json
from dataclasses import field, fields, is_dataclass
from typing import Any, Dict, List, Type, TypeVar, Union

T = TypeVar("T")


def json_field(json_name: str, **kwargs):
    """Create a field with custom JSON name"""
    return field(metadata={"json_name": json_name}, **kwargs)


def optional_json_field(json_name: str, json_include: str = "non_null", **kwargs):
    """Create a field with custom JSON name that is skipped when None"""
    kwargs.setdefault("default", None)
    return field(metadata={"json_name": json_name, "json_include": json_include}, **kwargs)


class JSON:
    """
    Maps dataclasses annotated with json_field to JSON and back. Classes may
    override the mapping by providing to_dict / from_dict.
    """

    @staticmethod
    def to_json(obj: Any, **kwargs) -> str:
        return json.dumps(JSON.to_dict(obj), ensure_ascii=False, **kwargs)

    @staticmethod
    def from_json(json_str: Union[str, bytes], target_class: Type[T]) -> T:
        data = json.loads(json_str)
        return JSON.from_dict(data, target_class)

    @staticmethod
    def to_dict(obj: Any) -> Any:
        if hasattr(obj, "to_dict") and callable(getattr(obj, "to_dict")):
            return obj.to_dict()
        if not is_dataclass(obj):
            return obj

        result = {}
        for field_info in fields(obj):
            if field_info.metadata.get("json_ignore"):
                continue
            field_value = getattr(obj, field_info.name)
            json_name = field_info.metadata.get("json_name", field_info.name)

            if field_value is None and field_info.metadata.get("json_include", None) == "non_null":
                continue

            if hasattr(field_value, "to_dict") or is_dataclass(field_value):
                result[json_name] = JSON.to_dict(field_value)
            elif isinstance(field_value, (list, tuple)):
                result[json_name] = [JSON.to_dict(item) for item in field_value]
            else:
                result[json_name] = field_value

        return result

    @staticmethod
    def from_dict(data: Dict[str, Any], target_class: Type[T]) -> T:
        if hasattr(target_class, "from_dict") and callable(getattr(target_class, "from_dict")):
            return target_class.from_dict(data)

        # json_name -> field_name, and the dataclass type of nested values
        field_mapping = {}
        type_mapping = {}
        for field_info in fields(target_class):
            json_name = field_info.metadata.get("json_name", field_info.name)
            field_mapping[json_name] = field_info.name
            origin_type = getattr(field_info.type, '__origin__', None)
            args = getattr(field_info.type, '__args__', None)
            field_type = field_info.type
            if origin_type is Union and len(args) == 2:
                field_type = args[0]
                origin_type = getattr(field_type, '__origin__', None)
                args = getattr(field_type, '__args__', None)
            if is_dataclass(field_type):
                type_mapping[json_name] = (None, field_type)
            elif origin_type in (list, List) and args and is_dataclass(args[0]):
                type_mapping[json_name] = (list, args[0])

        kwargs = {}
        for json_name, value in data.items():
            if json_name not in field_mapping:
                continue
            field_name = field_mapping[json_name]
            if json_name in type_mapping and value is not None:
                container, item_type = type_mapping[json_name]
                if container is list:
                    kwargs[field_name] = [JSON.from_dict(item, item_type) for item in value]
                else:
                    kwargs[field_name] = JSON.from_dict(value, item_type)
            else:
                kwargs[field_name] = value

        return target_class(**kwargs)
