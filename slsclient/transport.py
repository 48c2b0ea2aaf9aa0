"""The request seam between API classes and whatever sends HTTP requests."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol

from slsclient.config import REQUEST_ID_HEADER
from slsclient.errors import BadResponseError, ClientError, LogServiceError


@dataclass
class Response:
    """A response returned by a transport."""

    status_code: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        try:
            return json.loads(self.body)
        except ValueError as exc:
            raise ClientError(str(exc)) from exc


class Transport(Protocol):
    """Sends one signed request to the service for a project."""

    def __call__(
        self,
        project: str,
        method: str,
        uri: str,
        headers: dict[str, str],
        body: bytes | None,
    ) -> Response: ...


class BaseClient:
    """Common request handling for the API classes."""

    def __init__(self, transport: Transport):
        self._transport = transport

    def _request(
        self,
        project: str,
        method: str,
        uri: str,
        headers: Mapping[str, str],
        body: bytes | None = None,
    ) -> Response:
        response = self._transport(project, method, uri, dict(headers), body)
        if not 200 <= response.status_code < 300:
            raise self._error_from(response)
        return response

    @staticmethod
    def _error_from(response: Response) -> Exception:
        try:
            err = LogServiceError.from_json(response.body, response.status_code)
        except ValueError:
            return BadResponseError(response.text, dict(response.headers), response.status_code)
        if not err.request_id:
            lowered = {k.lower(): v for k, v in response.headers.items()}
            err.request_id = lowered.get(REQUEST_ID_HEADER, "")
        return err

    @staticmethod
    def _encode(payload: Any) -> bytes:
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")

    @staticmethod
    def _json_headers(body: bytes | None = None) -> dict[str, str]:
        return {
            "x-log-bodyrawsize": str(len(body or b"")),
            "Content-Type": "application/json",
        }