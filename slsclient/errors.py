"""Exceptions raised by the log service client."""

from __future__ import annotations

import json
from typing import Any, Mapping


class LogServiceError(Exception):
    """An error reported by the log service."""

    def __init__(self, code: str = "", message: str = "", request_id: str = "", http_code: int = 0):
        super().__init__(code, message)
        self.code = code
        self.message = message
        self.request_id = request_id
        self.http_code = http_code

    @classmethod
    def from_json(cls, body: str | bytes, http_code: int) -> "LogServiceError":
        """Build an error from a service error body; ValueError if it is not one."""
        data = json.loads(body)
        if not isinstance(data, dict):
            raise ValueError("error body is not a JSON object")
        return cls(
            code=str(data.get("errorCode") or ""),
            message=str(data.get("errorMessage") or ""),
            request_id=str(data.get("requestID") or ""),
            http_code=http_code,
        )

    def __str__(self) -> str:
        return f"{self.code}: {self.message} (http {self.http_code}, request {self.request_id!r})"


class ClientError(Exception):
    """An error raised on the client side, such as a body that cannot be decoded."""

    code = "ClientError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BadResponseError(Exception):
    """A service response that is not a valid error body."""

    def __init__(self, body: str, header: Mapping[str, Any] | None = None, http_code: int = 0):
        super().__init__(body)
        self.resp_body = body
        self.resp_header = dict(header or {})
        self.http_code = http_code

    def to_json(self) -> str:
        return json.dumps(
            {"RespBody": self.resp_body, "RespHeader": self.resp_header, "HTTPCode": self.http_code},
            indent=4,
        )

    def __str__(self) -> str:
        return self.to_json()