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

from lakecat.api.auth.provider import (AuthProvider, BearerTokenAuthProvider,
                                       NoneAuthProvider)
from lakecat.catalog.catalog_exception import ConfigurationError
from lakecat.common.options import Options
from lakecat.common.options.config import CatalogOptions


class AuthProviderFactory:

    # "bear" is kept for configurations written against older clients
    BEARER_PROVIDERS = ("bearer", "bear")
    NONE_PROVIDERS = ("none",)

    @staticmethod
    def create_auth_provider(options: Options) -> AuthProvider:
        provider = options.get(CatalogOptions.TOKEN_PROVIDER)
        token = options.get(CatalogOptions.TOKEN)
        if provider is None:
            provider = "bearer" if token else "none"
        provider = provider.lower()
        if provider in AuthProviderFactory.BEARER_PROVIDERS:
            if not token:
                raise ConfigurationError(CatalogOptions.TOKEN.key(), "a token is required by the bearer provider")
            return BearerTokenAuthProvider(token)
        elif provider in AuthProviderFactory.NONE_PROVIDERS:
            return NoneAuthProvider()
        raise ConfigurationError(CatalogOptions.TOKEN_PROVIDER.key(), f"unknown auth provider '{provider}'")
