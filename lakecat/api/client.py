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
import logging
import urllib.parse
from typing import Any, Callable, Dict, Optional, Type, TypeVar

import requests
from requests.adapters import HTTPAdapter
from urllib3 import Retry

from lakecat.api.api_response import ErrorResponse
from lakecat.api.rest_exception import (BadRequestException, ConflictException,
                                        ForbiddenException,
                                        NoSuchResourceException,
                                        NotAuthorizedException,
                                        NotImplementedException,
                                        RequestTimeoutException,
                                        RESTException,
                                        ServiceFailureException,
                                        ServiceUnavailableException)
from lakecat.api.typedef import RESTAuthParameter
from lakecat.common.json_util import JSON

T = TypeVar('T')

AuthFunction = Callable[[RESTAuthParameter], Dict[str, str]]

REQUEST_ID_HEADER = "x-request-id"
UNKNOWN_REQUEST_ID = "unknown"


class DefaultErrorHandler:
    """Raises the RESTException subclass matching the status code of an error response."""

    SIMPLE_ERRORS = {
        400: (BadRequestException, "%s"),
        401: (NotAuthorizedException, "Not authorized: %s"),
        403: (ForbiddenException, "Forbidden: %s"),
        500: (ServiceFailureException, "Server error: %s"),
        501: (NotImplementedException, "%s"),
        502: (ServiceUnavailableException, "Service unavailable: %s"),
        503: (ServiceUnavailableException, "Service unavailable: %s"),
        504: (ServiceUnavailableException, "Service unavailable: %s"),
    }

    @classmethod
    def accept(cls, error: ErrorResponse, request_id: str) -> None:
        message = error.message
        if request_id != UNKNOWN_REQUEST_ID:
            message = f"{message} requestId:{request_id}"

        if error.code == 404:
            raise NoSuchResourceException(error.resource_type, error.resource_name, "%s", message)
        if error.code == 409:
            raise ConflictException(error.resource_type, error.resource_name, "%s", message)
        if error.code in cls.SIMPLE_ERRORS:
            exception_class, template = cls.SIMPLE_ERRORS[error.code]
            raise exception_class(template, message)
        raise RESTException("Unable to process (HTTP %s): %s", error.code, message)


class ExponentialRetry:
    """
    Retries idempotent requests on connection failures and gateway errors.
    POST is never retried so a conditional commit is sent at most once.
    """

    RETRY_METHODS = ["GET", "HEAD", "PUT", "DELETE", "TRACE", "OPTIONS"]

    def __init__(self, max_retries: int = 5):
        retry = Retry(
            total=max_retries,
            read=max_retries,
            connect=max_retries,
            backoff_factor=1,
            status_forcelist=[429, 502, 503, 504],
            allowed_methods=self.RETRY_METHODS,
            raise_on_status=False,
            raise_on_redirect=False,
        )
        self.adapter = HTTPAdapter(max_retries=retry)


def _normalize_uri(uri: str) -> str:
    if not uri or not uri.strip():
        raise ValueError("uri is empty which must be defined.")
    server_uri = uri.strip().rstrip("/")
    if not server_uri.startswith(("http://", "https://")):
        server_uri = f"http://{server_uri}"
    return server_uri


def _parse_error_response(response_body: Optional[str], status_code: int) -> ErrorResponse:
    if not response_body:
        return ErrorResponse(message="response body is null", code=status_code)
    try:
        error = JSON.from_json(response_body, ErrorResponse)
    except (ValueError, TypeError, AttributeError):
        return ErrorResponse(message=response_body, code=status_code)
    if not isinstance(error, ErrorResponse):
        return ErrorResponse(message=response_body, code=status_code)
    # some servers report the status under a different key or not at all
    error.code = status_code
    if error.message is None:
        error.message = response_body
    return error


class HttpClient:
    """
    JSON over HTTP on a pooled requests.Session. Response types are
    json_field dataclasses, dict for the raw decoded body, or None.
    Every request carries the headers produced by the auth function for it.
    """

    def __init__(self, uri: str, timeout: float = 180, max_retries: int = 3):
        self.logger = logging.getLogger(__name__)
        self.uri = _normalize_uri(uri)
        self.timeout = timeout

        self.session = requests.Session()
        adapter = ExponentialRetry(max_retries=max_retries).adapter
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)
        self.session.headers.update({
            'Accept': 'application/json',
            'Content-Type': 'application/json',
        })

    def get(self, path: str, response_type: Type[T], auth_function: AuthFunction) -> T:
        return self.get_with_params(path, {}, response_type, auth_function)

    def get_with_params(self, path: str, query_params: Dict[str, str],
                        response_type: Type[T], auth_function: AuthFunction) -> T:
        headers = auth_function(RESTAuthParameter(path=path, parameters=query_params, method="GET", data=None))
        return self._execute("GET", self._url(path, query_params), headers=headers, response_type=response_type)

    def post(self, path: str, body: Any, auth_function: AuthFunction) -> None:
        self.post_with_response_type(path, body, None, auth_function)

    def post_with_response_type(self, path: str, body: Any, response_type: Optional[Type[T]],
                                auth_function: AuthFunction) -> T:
        try:
            body_str = JSON.to_json(body)
        except (TypeError, ValueError) as e:
            raise RESTException("build request failed.", cause=e)
        headers = auth_function(RESTAuthParameter(path=path, parameters=None, method="POST", data=body_str))
        return self._execute("POST", self._url(path, None), data=body_str, headers=headers,
                             response_type=response_type)

    def delete(self, path: str, auth_function: AuthFunction) -> None:
        headers = auth_function(RESTAuthParameter(path=path, parameters=None, method="DELETE", data=None))
        self._execute("DELETE", self._url(path, None), headers=headers, response_type=None)

    def _url(self, path: str, query_params: Optional[Dict[str, str]]) -> str:
        url = self.uri + path if path and path.strip() else self.uri
        if query_params:
            url = f"{url}?{urllib.parse.urlencode(query_params)}"
        return url

    def close(self) -> None:
        self.session.close()

    def _execute(self, method: str, url: str,
                 data: Optional[str] = None,
                 headers: Optional[Dict[str, str]] = None,
                 response_type: Optional[Type[T]] = None) -> T:
        request_id = (headers or {}).get(REQUEST_ID_HEADER, UNKNOWN_REQUEST_ID)
        self.logger.debug(f"Request [{request_id}]: {method} {url}")
        try:
            response = self.session.request(
                method=method,
                url=url,
                data=data.encode('utf-8') if data else None,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise RequestTimeoutException("%s %s timed out after %ss", method, url, self.timeout, cause=e)
        except requests.ConnectionError as e:
            raise ServiceUnavailableException("Cannot reach %s", url, cause=e)
        except requests.RequestException as e:
            raise RESTException("rest exception", cause=e)

        self.logger.debug(f"Response [{request_id}]: {response.status_code}")
        body = response.text or None
        if not response.ok:
            DefaultErrorHandler.accept(_parse_error_response(body, response.status_code),
                                       response.headers.get(REQUEST_ID_HEADER, UNKNOWN_REQUEST_ID))

        if response_type is None:
            return None
        if body is None:
            raise RESTException("response body is null.")
        try:
            if response_type is dict:
                return json.loads(body)
            return JSON.from_json(body, response_type)
        except (ValueError, TypeError) as e:
            raise RESTException("Cannot decode response of %s %s", method, url, cause=e)
