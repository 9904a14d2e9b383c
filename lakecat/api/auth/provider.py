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

from abc import ABC, abstractmethod
from typing import Dict, Mapping, Optional

from lakecat.api.typedef import RESTAuthParameter

AUTHORIZATION = "Authorization"


class AuthProvider(ABC):
    """Supplies the authentication headers of one catalog request."""

    @abstractmethod
    def auth_headers(self, request: RESTAuthParameter) -> Dict[str, str]:
        pass


class BearerTokenAuthProvider(AuthProvider):

    def __init__(self, token: str):
        if not token:
            raise ValueError("bearer token must not be empty")
        self._token = token

    def auth_headers(self, request: RESTAuthParameter) -> Dict[str, str]:
        return {AUTHORIZATION: f"Bearer {self._token}"}

    def __repr__(self) -> str:
        return "BearerTokenAuthProvider(token=****)"


class NoneAuthProvider(AuthProvider):

    def auth_headers(self, request: RESTAuthParameter) -> Dict[str, str]:
        return {}

    def __repr__(self) -> str:
        return "NoneAuthProvider()"


class RESTAuthFunction:
    """
    Headers of a catalog request: the static headers configured under
    header.* followed by the provider's auth headers. A configured
    Authorization header is replaced by the provider's, never merged.
    """

    def __init__(self, static_headers: Optional[Mapping[str, str]], auth_provider: AuthProvider):
        self.static_headers = dict(static_headers or {})
        self.auth_provider = auth_provider

    def __call__(self, request: RESTAuthParameter) -> Dict[str, str]:
        headers = {k: v for k, v in self.static_headers.items() if k.lower() != AUTHORIZATION.lower()}
        headers.update(self.auth_provider.auth_headers(request))
        return headers
