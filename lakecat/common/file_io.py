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
import logging
import os
import re
import uuid
from pathlib import PurePosixPath
from typing import Any, Dict, List
from urllib.parse import urlparse

import pyarrow
import pyarrow.fs
from packaging.version import parse
from pyarrow.fs import FileSystem, FileType

from lakecat.common.options import Options
from lakecat.common.options.config import CatalogOptions, S3Options

S3_SCHEMES = {"s3", "s3a", "s3n"}


class FileIO:
    """
    Reads and writes metadata files under a warehouse through a pyarrow
    filesystem chosen by the scheme of the warehouse: local paths and file://
    map to the local filesystem, s3://, s3a:// and s3n:// to S3.
    """

    def __init__(self, warehouse: str, catalog_options: Options):
        self.properties = catalog_options
        self.logger = logging.getLogger(__name__)
        self.scheme = urlparse(warehouse).scheme or "file"
        if self.scheme in S3_SCHEMES:
            self.filesystem = self._s3_filesystem()
        elif self.scheme == "file":
            self.filesystem = pyarrow.fs.LocalFileSystem()
        else:
            raise ValueError(f"Unsupported scheme '{self.scheme}' in warehouse {warehouse}")

    def _s3_retry_config(self, max_attempts: int = 10) -> Dict[str, Any]:
        """Timeouts and retry strategy of the S3 client; pyarrow only accepts them from 8.0.0 on."""
        if parse(pyarrow.__version__) < parse("8.0.0"):
            return {}
        from pyarrow.fs import AwsStandardS3RetryStrategy
        timeout = self.properties.get(CatalogOptions.REQUEST_TIMEOUT).total_seconds()
        return {
            'request_timeout': timeout,
            'connect_timeout': timeout,
            'retry_strategy': AwsStandardS3RetryStrategy(max_attempts=max_attempts),
        }

    def _s3_filesystem(self) -> FileSystem:
        from pyarrow.fs import S3FileSystem

        client_kwargs = {
            "endpoint_override": self.properties.get(S3Options.S3_ENDPOINT),
            "access_key": self.properties.get(S3Options.S3_ACCESS_KEY_ID),
            "secret_key": self.properties.get(S3Options.S3_ACCESS_KEY_SECRET),
            "session_token": self.properties.get(S3Options.S3_SECURITY_TOKEN),
            "region": self.properties.get(S3Options.S3_REGION),
        }
        client_kwargs.update(self._s3_retry_config())
        return S3FileSystem(**client_kwargs)

    def is_local(self) -> bool:
        return isinstance(self.filesystem, pyarrow.fs.LocalFileSystem)

    def to_filesystem_path(self, path: str) -> str:
        """Path as the filesystem expects it: "bucket/key" on S3, an absolute path locally."""
        parsed = urlparse(path)
        if not parsed.scheme:
            return os.path.abspath(path) if self.is_local() else path
        normalized = re.sub(r'/+', '/', parsed.path) if parsed.path else ''
        if self.scheme in S3_SCHEMES:
            key = normalized.lstrip('/')
            return f"{parsed.netloc}/{key}" if key else parsed.netloc
        return normalized or '/'

    def _file_type(self, path: str) -> FileType:
        return self.filesystem.get_file_info([self.to_filesystem_path(path)])[0].type

    def exists(self, path: str) -> bool:
        return self._file_type(path) != FileType.NotFound

    def is_dir(self, path: str) -> bool:
        return self._file_type(path) == FileType.Directory

    def _list(self, path: str):
        selector = pyarrow.fs.FileSelector(self.to_filesystem_path(path), recursive=False, allow_not_found=True)
        return self.filesystem.get_file_info(selector)

    def list_directories(self, path: str):
        return [info for info in self._list(path) if info.type == FileType.Directory]

    def list_file_names(self, path: str) -> List[str]:
        return [info.base_name for info in self._list(path) if info.type == FileType.File]

    def mkdirs(self, path: str):
        self.filesystem.create_dir(self.to_filesystem_path(path), recursive=True)

    def check_or_mkdirs(self, path: str):
        if not self.exists(path):
            self.mkdirs(path)
        elif not self.is_dir(path):
            raise ValueError(f"The path '{path}' should be a directory.")

    def delete_dir(self, path: str):
        self.filesystem.delete_dir(self.to_filesystem_path(path))

    def delete_quietly(self, path: str):
        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.debug(f"Ready to delete {path}")
        try:
            self.filesystem.delete_file(self.to_filesystem_path(path))
        except FileNotFoundError:
            pass
        except OSError:
            self.logger.warning(f"Exception occurs when deleting file {path}", exc_info=True)

    def read_bytes(self, path: str) -> bytes:
        with self.filesystem.open_input_file(self.to_filesystem_path(path)) as input_stream:
            return input_stream.read()

    def read_file_utf8(self, path: str) -> str:
        return self.read_bytes(path).decode('utf-8')

    def _open_output(self, path: str):
        path_str = self.to_filesystem_path(path)
        parent = str(PurePosixPath(path_str).parent)
        if parent and parent != path_str:
            self.filesystem.create_dir(parent, recursive=True)
        return self.filesystem.open_output_stream(path_str)

    def write_bytes(self, path: str, content: bytes, overwrite: bool = False):
        if not overwrite and self.exists(path):
            raise FileExistsError(f"File {path} already exists and overwrite=False")
        with self._open_output(path) as output_stream:
            output_stream.write(content)

    def overwrite_file_utf8(self, path: str, content: str):
        self.write_bytes(path, content.encode('utf-8'), overwrite=True)

    def try_to_write_atomic(self, path: str, content: str) -> bool:
        """Writes content through a temp file and a rename, replacing any existing file."""
        temp_path = f"{path}.{uuid.uuid4().hex}.tmp"
        success = False
        try:
            self.write_bytes(temp_path, content.encode('utf-8'))
            self.filesystem.move(self.to_filesystem_path(temp_path), self.to_filesystem_path(path))
            success = True
        except OSError as e:
            self.logger.warning(f"Failed to rename {temp_path} to {path}: {e}")
        finally:
            if not success:
                self.delete_quietly(temp_path)
        return success

    def try_to_write_exclusive(self, path: str, content: bytes) -> bool:
        """
        Publishes content at path only if nothing exists there yet. Returns False
        when another writer got there first.

        On the local filesystem this is atomic: the temp file is hard-linked to
        the target, which fails when the target exists. Object stores have no
        no-overwrite rename, so there it is an exists check followed by a move.
        """
        temp_path = f"{path}.{uuid.uuid4().hex}.tmp"
        self.write_bytes(temp_path, content)
        try:
            if self.is_local():
                try:
                    os.link(self.to_filesystem_path(temp_path), self.to_filesystem_path(path))
                    return True
                except FileExistsError:
                    return False
            if self.exists(path):
                return False
            self.filesystem.move(self.to_filesystem_path(temp_path), self.to_filesystem_path(path))
            return True
        finally:
            if self.exists(temp_path):
                self.delete_quietly(temp_path)
