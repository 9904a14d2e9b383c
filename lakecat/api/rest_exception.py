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

from typing import Any, Optional


class RESTException(Exception):
    """Error answered by, or raised while talking to, an HTTP catalog server."""

    status: Optional[int] = None

    def __init__(self, message: str = None, *args: Any, cause: Optional[Exception] = None):
        if message and args:
            try:
                message = message % args
            except (TypeError, ValueError):
                message = f"{message} {' '.join(str(arg) for arg in args)}"
        super().__init__(message or "REST API error occurred")
        self.__cause__ = cause

    def __repr__(self) -> str:
        if self.__cause__:
            return f"{self.__class__.__name__}('{self}', caused by {type(self.__cause__).__name__}: {self.__cause__})"
        return f"{self.__class__.__name__}('{self}')"


class BadRequestException(RESTException):
    status = 400


class NotAuthorizedException(RESTException):
    status = 401


class ForbiddenException(RESTException):
    status = 403


class ResourceException(RESTException):
    """Error about a named resource: the response names its type and name when the server reports them."""

    def __init__(self, resource_type: Optional[str], resource_name: Optional[str],
                 message: str, *args: Any):
        self.resource_type = resource_type
        self.resource_name = resource_name
        super().__init__(message, *args)


class NoSuchResourceException(ResourceException):
    status = 404


class ConflictException(ResourceException):
    """The resource already exists, or an expected version or hash has moved."""
    status = 409


class ServiceFailureException(RESTException):
    status = 500


class NotImplementedException(RESTException):
    status = 501


class ServiceUnavailableException(RESTException):
    """502, 503 and 504 answers, and servers that cannot be reached at all."""
    status = 503


class RequestTimeoutException(RESTException):
    """The server did not answer within the request timeout. The effect of the request is unknown."""
