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
from typing import Dict, List, Optional, Sequence

from lakecat.api.auth import RESTAuthFunction
from lakecat.api.client import HttpClient
from lakecat.api.rest_exception import NoSuchResourceException
from lakecat.api.rest_util import RESTUtil
from lakecat.common.json_util import json_field, optional_json_field

ICEBERG_TABLE = "ICEBERG_TABLE"
NAMESPACE = "NAMESPACE"
BRANCH = "BRANCH"

# escapes dots inside key elements in v2 paths
_GROUP_SEPARATOR = "\x1d"


@dataclass
class Reference:
    name: str = json_field("name")
    hash: Optional[str] = optional_json_field("hash")
    type: str = json_field("type", default=BRANCH)

    def pinned(self) -> str:
        return f"{self.name}@{self.hash}" if self.hash else self.name


@dataclass
class ContentKey:
    elements: List[str] = json_field("elements", default_factory=list)


@dataclass
class Content:
    type: str = json_field("type")
    id: Optional[str] = optional_json_field("id")
    metadata_location: Optional[str] = optional_json_field("metadataLocation")
    snapshot_id: Optional[int] = optional_json_field("snapshotId")
    schema_id: Optional[int] = optional_json_field("schemaId")
    spec_id: Optional[int] = optional_json_field("specId")
    sort_order_id: Optional[int] = optional_json_field("sortOrderId")
    elements: Optional[List[str]] = optional_json_field("elements")
    properties: Optional[Dict[str, str]] = optional_json_field("properties")


@dataclass
class ConfigResponse:
    default_branch: Optional[str] = json_field("defaultBranch", default=None)
    max_supported_api_version: Optional[int] = json_field("maxSupportedApiVersion", default=None)
    spec_version: Optional[str] = json_field("specVersion", default=None)


@dataclass
class SingleReferenceResponse:
    reference: Reference = json_field("reference")


@dataclass
class ContentResponse:
    content: Content = json_field("content")
    effective_reference: Optional[Reference] = json_field("effectiveReference", default=None)


@dataclass
class Entry:
    type: str = json_field("type")
    name: ContentKey = json_field("name")
    content_id: Optional[str] = json_field("contentId", default=None)


@dataclass
class EntriesResponse:
    entries: List[Entry] = json_field("entries", default_factory=list)
    has_more: bool = json_field("hasMore", default=False)
    token: Optional[str] = json_field("token", default=None)


@dataclass
class CommitMeta:
    message: str = json_field("message")
    author: Optional[str] = optional_json_field("author")
    properties: Dict[str, str] = json_field("properties", default_factory=dict)


@dataclass
class Operation:
    type: str = json_field("type")
    key: ContentKey = json_field("key")
    content: Optional[Content] = optional_json_field("content")
    expected_content: Optional[Content] = optional_json_field("expectedContent")

    @classmethod
    def put(cls, key: Sequence[str], content: Content, expected: Optional[Content] = None) -> "Operation":
        return cls("PUT", ContentKey(list(key)), content, expected)

    @classmethod
    def delete(cls, key: Sequence[str]) -> "Operation":
        return cls("DELETE", ContentKey(list(key)))


@dataclass
class CommitRequest:
    commit_meta: CommitMeta = json_field("commitMeta")
    operations: List[Operation] = json_field("operations", default_factory=list)


@dataclass
class CommitResponse:
    target_branch: Reference = json_field("targetBranch")


def api_base_uri(server_uri: str) -> str:
    """
    Accepts the server root, its /api path or a versioned /api/v1 or /api/v2
    path and returns the /api path the v2 resources hang off.
    """
    uri = server_uri.rstrip("/")
    if uri.endswith("/v1") or uri.endswith("/v2"):
        uri = uri[:-3]
    if not uri.endswith("/api"):
        uri = f"{uri}/api"
    return uri


class NessieApi:
    """Client of the Nessie REST API v2."""

    V2 = "/v2"

    def __init__(self, server_uri: str, auth_function: RESTAuthFunction, timeout: float):
        self.client = HttpClient(api_base_uri(server_uri), timeout=timeout)
        self.auth_function = auth_function

    @staticmethod
    def encode_key(key: Sequence[str]) -> str:
        return RESTUtil.encode_string(".".join(e.replace(".", _GROUP_SEPARATOR) for e in key))

    def _tree(self, ref: str) -> str:
        return f"{self.V2}/trees/{RESTUtil.encode_string(ref)}"

    def get_config(self) -> ConfigResponse:
        return self.client.get(f"{self.V2}/config", ConfigResponse, self.auth_function)

    def get_reference(self, ref: str) -> Reference:
        return self.client.get(self._tree(ref), SingleReferenceResponse, self.auth_function).reference

    def get_content(self, ref: str, key: Sequence[str]) -> Optional[Content]:
        """Content stored under key on ref, or None if there is none."""
        path = f"{self._tree(ref)}/contents/{self.encode_key(key)}"
        try:
            return self.client.get(path, ContentResponse, self.auth_function).content
        except NoSuchResourceException:
            return None

    def get_entries(self, ref: str) -> List[Entry]:
        entries = []
        page_token = None
        while True:
            params = {"token": page_token} if page_token else {}
            response = self.client.get_with_params(f"{self._tree(ref)}/entries", params, EntriesResponse,
                                                   self.auth_function)
            entries.extend(response.entries or [])
            if not response.has_more or not response.token:
                return entries
            page_token = response.token

    def commit(self, branch: Reference, message: str, operations: List[Operation],
               author: Optional[str] = None) -> Reference:
        """Commits onto branch at its pinned hash. A concurrent change to the same keys raises ConflictException."""
        body = CommitRequest(CommitMeta(message, author), operations)
        path = f"{self._tree(branch.pinned())}/history/commit"
        return self.client.post_with_response_type(path, body, CommitResponse, self.auth_function).target_branch

    def close(self):
        self.client.close()


def content_entry(metadata_location: str, metadata: dict, content_id: Optional[str] = None) -> Content:
    current_snapshot_id = metadata.get("current-snapshot-id")
    return Content(
        type=ICEBERG_TABLE,
        id=content_id,
        metadata_location=metadata_location,
        snapshot_id=-1 if current_snapshot_id is None else current_snapshot_id,
        schema_id=metadata.get("current-schema-id"),
        spec_id=metadata.get("default-spec-id"),
        sort_order_id=metadata.get("default-sort-order-id", 0),
    )


def namespace_entry(namespace: Sequence[str], properties: Optional[Dict[str, str]] = None) -> Content:
    return Content(type=NAMESPACE, elements=list(namespace), properties=dict(properties or {}))
