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

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, Mapping, Optional, Tuple
from urllib.parse import urlparse

from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from lakecat.catalog.catalog_exception import ConfigurationError
from lakecat.common.identifier import parse_namespace
from lakecat.common.options import ConfigOption, Options
from lakecat.common.options.config import (CatalogOptions, CatalogType,
                                           FileFormat)

# alias kept for configurations naming the bare filesystem catalog explicitly
FILESYSTEM_ALIAS = "filesystem"

SUPPORTED_WAREHOUSE_SCHEMES = ("", "file", "s3", "s3a", "s3n")
TOKEN_PROVIDERS = ("bearer", "bear", "none")

_DECLARED_OPTIONS = (
    CatalogOptions.TYPE,
    CatalogOptions.WAREHOUSE,
    CatalogOptions.SERVER_URI,
    CatalogOptions.TOKEN,
    CatalogOptions.TOKEN_PROVIDER,
    CatalogOptions.NAMESPACE,
    CatalogOptions.DEFAULT_FILE_FORMAT,
    CatalogOptions.NESSIE_REF,
    CatalogOptions.COMMIT_RETRY_ATTEMPTS,
    CatalogOptions.COMMIT_TIMEOUT,
    CatalogOptions.COMMIT_MIN_RETRY_WAIT,
    CatalogOptions.COMMIT_MAX_RETRY_WAIT,
    CatalogOptions.REQUEST_TIMEOUT,
)


@dataclass(frozen=True)
class CatalogConfig:
    """
    Validated, hashable catalog configuration. Two equal configs always map to
    the same cached client, so every field takes part in equality, including
    the backend specific options kept in properties.
    """

    catalog_type: CatalogType
    warehouse: Optional[str] = None
    server_uri: Optional[str] = None
    token: Optional[str] = field(default=None, repr=False)
    token_provider: Optional[str] = None
    namespace: Optional[Tuple[str, ...]] = None
    default_file_format: FileFormat = FileFormat.PARQUET
    ref: str = "main"
    commit_retry_attempts: int = 4
    commit_timeout: timedelta = timedelta(seconds=60)
    commit_min_retry_wait: timedelta = timedelta(milliseconds=100)
    commit_max_retry_wait: timedelta = timedelta(seconds=60)
    request_timeout: timedelta = timedelta(seconds=180)
    properties: Tuple[Tuple[str, str], ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'properties', tuple(sorted(
            (str(k), str(v)) for k, v in dict(self.properties).items())))
        if self.namespace is not None:
            object.__setattr__(self, 'namespace', tuple(self.namespace))
        self._validate()

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> "CatalogConfig":
        """
        Builds a config from raw string options, e.g.
        {"catalog.type": "nessie", "catalog.warehouse": "s3://bucket/wh",
         "catalog.server-uri": "http://localhost:19120/api"}.
        Raises ConfigurationError naming the offending key.
        """
        opts = Options(dict(options))
        raw_type = opts.get_raw(CatalogOptions.TYPE)
        if raw_type is None:
            raise ConfigurationError(CatalogOptions.TYPE.key(), "catalog type must be set")
        if raw_type.strip().lower() == FILESYSTEM_ALIAS:
            catalog_type = CatalogType.HADOOP
        else:
            catalog_type = _get(opts, CatalogOptions.TYPE)

        namespace = None
        raw_namespace = opts.get_raw(CatalogOptions.NAMESPACE)
        if raw_namespace is not None:
            try:
                namespace = parse_namespace(raw_namespace)
            except ValueError as e:
                raise ConfigurationError(CatalogOptions.NAMESPACE.key(), str(e)) from e

        consumed = set()
        for option in _DECLARED_OPTIONS:
            consumed.add(option.key())
            consumed.update(option.fallback_keys())
        properties = {k: str(v) for k, v in opts.to_map().items() if k not in consumed and v is not None}

        return cls(
            catalog_type=catalog_type,
            warehouse=_get(opts, CatalogOptions.WAREHOUSE),
            server_uri=_get(opts, CatalogOptions.SERVER_URI),
            token=_get(opts, CatalogOptions.TOKEN),
            token_provider=_get(opts, CatalogOptions.TOKEN_PROVIDER),
            namespace=namespace,
            default_file_format=_get(opts, CatalogOptions.DEFAULT_FILE_FORMAT),
            ref=_get(opts, CatalogOptions.NESSIE_REF),
            commit_retry_attempts=_get(opts, CatalogOptions.COMMIT_RETRY_ATTEMPTS),
            commit_timeout=_get(opts, CatalogOptions.COMMIT_TIMEOUT),
            commit_min_retry_wait=_get(opts, CatalogOptions.COMMIT_MIN_RETRY_WAIT),
            commit_max_retry_wait=_get(opts, CatalogOptions.COMMIT_MAX_RETRY_WAIT),
            request_timeout=_get(opts, CatalogOptions.REQUEST_TIMEOUT),
            properties=tuple(properties.items()),
        )

    def _validate(self):
        if not isinstance(self.catalog_type, CatalogType):
            raise ConfigurationError(CatalogOptions.TYPE.key(), f"unknown catalog type {self.catalog_type}")

        if self.catalog_type.requires_warehouse():
            if not self.warehouse:
                raise ConfigurationError(CatalogOptions.WAREHOUSE.key(),
                                         f"a warehouse is required by {self.catalog_type.value} catalogs")
        if self.warehouse is not None:
            _check_warehouse(self.warehouse)

        if self.catalog_type.is_remote():
            if not self.server_uri:
                raise ConfigurationError(CatalogOptions.SERVER_URI.key(),
                                         f"a server URI is required by {self.catalog_type.value} catalogs")
            if self.catalog_type is CatalogType.HIVE:
                try:
                    make_url(self.server_uri)
                except ArgumentError as e:
                    raise ConfigurationError(CatalogOptions.SERVER_URI.key(),
                                             f"'{self.server_uri}' is not a database URL") from e
            else:
                uri = urlparse(self.server_uri)
                if uri.scheme not in ("http", "https") or not uri.netloc:
                    raise ConfigurationError(CatalogOptions.SERVER_URI.key(),
                                             f"'{self.server_uri}' is not an http(s) URI")

        if self.token_provider is not None and self.token_provider.lower() not in TOKEN_PROVIDERS:
            raise ConfigurationError(CatalogOptions.TOKEN_PROVIDER.key(),
                                     f"unknown token provider '{self.token_provider}'")
        if self.namespace is not None and (not self.namespace or any(not s for s in self.namespace)):
            raise ConfigurationError(CatalogOptions.NAMESPACE.key(), "namespace segments must not be empty")
        if not self.ref:
            raise ConfigurationError(CatalogOptions.NESSIE_REF.key(), "reference name must not be empty")
        if self.commit_retry_attempts < 0:
            raise ConfigurationError(CatalogOptions.COMMIT_RETRY_ATTEMPTS.key(), "must not be negative")
        for option, value in ((CatalogOptions.COMMIT_TIMEOUT, self.commit_timeout),
                              (CatalogOptions.COMMIT_MIN_RETRY_WAIT, self.commit_min_retry_wait),
                              (CatalogOptions.COMMIT_MAX_RETRY_WAIT, self.commit_max_retry_wait),
                              (CatalogOptions.REQUEST_TIMEOUT, self.request_timeout)):
            if value <= timedelta(0):
                raise ConfigurationError(option.key(), "must be positive")
        if self.commit_min_retry_wait > self.commit_max_retry_wait:
            raise ConfigurationError(CatalogOptions.COMMIT_MIN_RETRY_WAIT.key(),
                                     f"must not exceed {CatalogOptions.COMMIT_MAX_RETRY_WAIT.key()}")

    def property(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return dict(self.properties).get(key, default)

    def to_options(self) -> Options:
        """All settings of this config keyed by their current option keys."""
        options = Options(dict(self.properties))
        options.set(CatalogOptions.TYPE, self.catalog_type)
        for option, value in ((CatalogOptions.WAREHOUSE, self.warehouse),
                              (CatalogOptions.SERVER_URI, self.server_uri),
                              (CatalogOptions.TOKEN, self.token),
                              (CatalogOptions.TOKEN_PROVIDER, self.token_provider)):
            if value is not None:
                options.set(option, value)
        if self.namespace is not None:
            options.set(CatalogOptions.NAMESPACE, ".".join(self.namespace))
        options.set(CatalogOptions.DEFAULT_FILE_FORMAT, self.default_file_format)
        options.set(CatalogOptions.NESSIE_REF, self.ref)
        options.set(CatalogOptions.COMMIT_RETRY_ATTEMPTS, self.commit_retry_attempts)
        options.set(CatalogOptions.COMMIT_TIMEOUT, self.commit_timeout)
        options.set(CatalogOptions.COMMIT_MIN_RETRY_WAIT, self.commit_min_retry_wait)
        options.set(CatalogOptions.COMMIT_MAX_RETRY_WAIT, self.commit_max_retry_wait)
        options.set(CatalogOptions.REQUEST_TIMEOUT, self.request_timeout)
        return options

    def request_timeout_seconds(self) -> float:
        return self.request_timeout.total_seconds()

    def __str__(self) -> str:
        return "CatalogConfig({}, warehouse={}, server_uri={})".format(
            self.catalog_type.value, self.warehouse, self.server_uri)


def _get(options: Options, option: ConfigOption):
    try:
        return options.get(option)
    except ValueError as e:
        raise ConfigurationError(option.key(), str(e)) from e


def _check_warehouse(warehouse: str):
    uri = urlparse(warehouse)
    # single letters are drive names, not schemes
    scheme = "" if len(uri.scheme) == 1 else uri.scheme
    if scheme not in SUPPORTED_WAREHOUSE_SCHEMES:
        raise ConfigurationError(CatalogOptions.WAREHOUSE.key(),
                                 f"unsupported filesystem scheme '{uri.scheme}' in {warehouse}")
    if scheme.startswith("s3") and not uri.netloc:
        raise ConfigurationError(CatalogOptions.WAREHOUSE.key(), f"missing bucket in {warehouse}")
