"""
=============================================================================
ACCESS LOG
=============================================================================

One entry per response written, on the "adminserver.access" logger.

An orchestrator typically polls /health every few seconds for the life of
the task, so entries go out at DEBUG by default. Turn the access logger up
to see them:

    logging.getLogger("adminserver.access").setLevel(logging.DEBUG)

Two formats:

    text   10.0.0.7 - - [18/Oct/2026:12:00:00 +0000] "GET /health HTTP/1.1" 200 2 0.41ms
    json   {"request_id": "3f2a9c1e", "method": "GET", "path": "/health", ...}

=============================================================================
"""

import json
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Optional

from .request import HTTPRequest
from .response import HTTPResponse


logger = logging.getLogger("adminserver.access")


@dataclass
class RequestLog:
    """
    Structured access log entry.

    request_id:     Short random id, for matching log lines
    method, path:   From the request line (path without query)
    query:          Raw query parameters, "" if none
    version:        HTTP version of the request
    client_ip:      Peer address
    user_agent:     User-Agent header or "-"
    status_code:    Response status
    content_length: Response body bytes on the wire
    duration_ms:    Time from parsed head to serialized response
    timestamp:      Common log format timestamp
    """

    request_id: str
    method: str
    path: str
    query: str
    version: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "method": self.method,
            "path": self.path,
            "query": self.query,
            "version": self.version,
            "client_ip": self.client_ip,
            "user_agent": self.user_agent,
            "status_code": self.status_code,
            "content_length": self.content_length,
            "duration_ms": round(self.duration_ms, 2),
            "timestamp": self.timestamp,
        }

    def to_text(self) -> str:
        """Apache-style line with the duration appended."""
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path} {self.version}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


class AccessLogger:
    """
    Formats and emits RequestLog entries.

        access_log = AccessLogger(log_format="json")
        access_log.log(request, response, started_at)
    """

    def __init__(self, log_format: str = "text", log_level: int = logging.DEBUG):
        self.log_format = log_format
        self.log_level = log_level

    def build_entry(
        self,
        request: HTTPRequest,
        response: HTTPResponse,
        started_at: float,
        request_id: Optional[str] = None,
    ) -> RequestLog:
        query = "&".join(
            f"{name}={value}"
            for name, values in request.query_params.items()
            for value in values
        )
        return RequestLog(
            request_id=request_id or str(uuid.uuid4())[:8],
            method=request.method,
            path=request.path,
            query=query,
            version=request.version,
            client_ip=request.client_address[0] or "-",
            user_agent=request.user_agent or "-",
            status_code=int(response.status),
            content_length=len(response.body),
            duration_ms=(time.monotonic() - started_at) * 1000,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

    def log(self, request: HTTPRequest, response: HTTPResponse, started_at: float) -> None:
        if not logger.isEnabledFor(self.log_level):
            return

        entry = self.build_entry(request, response, started_at)
        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            logger.log(self.log_level, entry.to_text())
