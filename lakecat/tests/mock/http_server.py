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
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qsl, unquote, urlparse

from lakecat.api.api_response import ErrorResponse
from lakecat.common.json_util import JSON


class MockServerError(Exception):

    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status
        self.message = message


class MockHTTPServer:
    """
    In-process JSON server for tests. Subclasses implement route() over the
    decoded path segments; raising MockServerError answers with an error
    body the client side error handler understands.
    """

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.server = None
        self.server_thread = None
        self.port = 0
        self.requests: List[Tuple[str, str]] = []

    def start(self) -> None:
        self.server = HTTPServer(('localhost', 0), self._create_request_handler())
        self.port = self.server.server_port
        self.server_thread = threading.Thread(target=self.server.serve_forever)
        self.server_thread.daemon = True
        self.server_thread.start()
        self.logger.info(f"Mock server started on port {self.port}")

    def get_url(self) -> str:
        return f"http://localhost:{self.port}"

    def shutdown(self) -> None:
        if self.server:
            self.server.shutdown()
            self.server.server_close()
        if self.server_thread:
            self.server_thread.join()

    def route(self, method: str, segments: List[str], params: Dict[str, str],
              body: Optional[Dict[str, Any]], headers: Dict[str, str]) -> Tuple[int, Any]:
        raise NotImplementedError

    def _create_request_handler(self):
        server_instance = self

        class RequestHandler(BaseHTTPRequestHandler):
            def do_GET(self):
                self._handle_request('GET')

            def do_POST(self):
                self._handle_request('POST')

            def do_DELETE(self):
                self._handle_request('DELETE')

            def _handle_request(self, method: str):
                parsed_url = urlparse(self.path)
                # split before decoding so encoded slashes stay inside their segment
                segments = [unquote(s) for s in parsed_url.path.split('/') if s]
                params = dict(parse_qsl(parsed_url.query))
                content_length = int(self.headers.get('Content-Length', 0))
                data = self.rfile.read(content_length).decode('utf-8') if content_length > 0 else ""
                server_instance.requests.append((method, parsed_url.path))
                try:
                    status, response = server_instance.route(
                        method, segments, params, json.loads(data) if data else None,
                        {k.lower(): v for k, v in self.headers.items()})
                except MockServerError as e:
                    status, response = e.status, ErrorResponse(message=e.message, code=e.status)
                except Exception as e:
                    server_instance.logger.error(f"Request handling error: {e}", exc_info=True)
                    status, response = 500, ErrorResponse(message=str(e), code=500)
                self._send_response(status, response)

            def _send_response(self, status_code: int, body: Any):
                payload = json.dumps(JSON.to_dict(body)) if body is not None else ""
                self.send_response(status_code)
                self.send_header('Content-Type', 'application/json')
                self.send_header('Content-Length', str(len(payload.encode('utf-8'))))
                self.end_headers()
                self.wfile.write(payload.encode('utf-8'))

            def log_message(self, format, *args):
                server_instance.logger.debug(format % args)

        return RequestHandler
