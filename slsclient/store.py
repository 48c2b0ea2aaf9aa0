"""Shard splitting and merging, cursor times and sub stores of a logstore."""

from __future__ import annotations

import base64
import binascii
import re
from datetime import datetime, timezone
from typing import Any, Mapping
from urllib.parse import urlencode

from slsclient.errors import ClientError
from slsclient.transport import BaseClient, Response

_INTEGER = re.compile(r"[+-]?[0-9]+")


def _query(params: Mapping[str, str]) -> str:
    return urlencode(sorted(params.items()))


def _decode_list(response: Response) -> list[Any]:
    data = response.json()
    if data is None:
        return []
    if not isinstance(data, list):
        raise ClientError("response body must be a JSON array")
    return data


def _decode_object(response: Response) -> dict[str, Any]:
    data = response.json()
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ClientError("response body must be a JSON object")
    return data


class StoreApi(BaseClient):
    """Operations on the shards, cursors and sub stores of a logstore."""

    _EMPTY = {"x-log-bodyrawsize": "0"}

    def _request_ok(
        self,
        project: str,
        method: str,
        uri: str,
        headers: Mapping[str, str],
        body: bytes | None = None,
    ) -> Response:
        response = self._request(project, method, uri, headers, body)
        if response.status_code != 200:
            raise self._error_from(response)
        return response

    def _write_headers(self, body: bytes) -> dict[str, str]:
        headers = self._json_headers(body)
        headers["Accept-Encoding"] = "deflate"
        return headers

    # Shards

    def _split_shard(
        self, project: str, logstore: str, shard_id: int, shards_num: int, split_key: str
    ) -> list[dict[str, Any]]:
        params = {"action": "split"}
        if split_key:
            params["key"] = split_key
        if shards_num > 0:
            params["shardCount"] = str(shards_num)
        uri = f"/logstores/{logstore}/shards/{shard_id}?{_query(params)}"
        response = self._request(project, "POST", uri, self._EMPTY)
        return _decode_list(response)

    def split_shard(
        self, project: str, logstore: str, shard_id: int, split_key: str
    ) -> list[dict[str, Any]]:
        """Split a shard in two at the given hash key; returns the resulting shards."""
        return self._split_shard(project, logstore, shard_id, 0, split_key)

    def split_num_shard(
        self, project: str, logstore: str, shard_id: int, shards_num: int
    ) -> list[dict[str, Any]]:
        """Split a shard into shards_num shards; returns the resulting shards."""
        return self._split_shard(project, logstore, shard_id, shards_num, "")

    def merge_shards(self, project: str, logstore: str, shard_id: int) -> list[dict[str, Any]]:
        """Merge a shard with its neighbour; returns the resulting shards."""
        uri = f"/logstores/{logstore}/shards/{shard_id}?{_query({'action': 'merge'})}"
        response = self._request(project, "POST", uri, self._EMPTY)
        return _decode_list(response)

    # Cursors

    def get_cursor_time(self, project: str, logstore: str, shard_id: int, cursor: str) -> datetime:
        """The server receive time of the log at a cursor, as an aware UTC datetime."""
        params = {"cursor": cursor, "type": "cursor_time"}
        uri = f"/logstores/{logstore}/shards/{shard_id}?{_query(params)}"
        data = _decode_object(self._request(project, "GET", uri, self._EMPTY))
        try:
            seconds = int(data.get("cursor_time") or 0)
        except (TypeError, ValueError) as exc:
            raise ClientError(f"invalid cursor_time: {exc}") from exc
        return datetime.fromtimestamp(seconds, tz=timezone.utc)

    def get_prev_cursor_time(
        self, project: str, logstore: str, shard_id: int, cursor: str
    ) -> datetime:
        """The cursor time of the position just before the given cursor."""
        try:
            raw = base64.b64decode(cursor, validate=True).decode("ascii")
        except (binascii.Error, ValueError) as exc:
            raise ClientError(f"invalid cursor: {exc}") from exc
        if not _INTEGER.fullmatch(raw):
            raise ClientError(f"invalid cursor value: {raw!r}")
        previous = base64.b64encode(str(int(raw) - 1).encode("ascii")).decode("ascii")
        return self.get_cursor_time(project, logstore, shard_id, previous)

    # Sub stores

    def list_sub_store(self, project: str, logstore: str) -> list[str]:
        """Names of the sub stores of a logstore."""
        response = self._request_ok(project, "GET", f"/logstores/{logstore}/substores", self._EMPTY)
        return list(_decode_object(response).get("substores") or [])

    def get_sub_store(self, project: str, logstore: str, name: str) -> dict[str, Any]:
        uri = f"/logstores/{logstore}/substores/{name}"
        return _decode_object(self._request_ok(project, "GET", uri, self._EMPTY))

    def create_sub_store(self, project: str, logstore: str, sub_store: Mapping[str, Any]) -> None:
        body = self._encode(dict(sub_store))
        uri = f"/logstores/{logstore}/substores"
        self._request_ok(project, "POST", uri, self._write_headers(body), body)

    def update_sub_store(self, project: str, logstore: str, sub_store: Mapping[str, Any]) -> None:
        """Update the sub store named by the "name" entry of sub_store."""
        body = self._encode(dict(sub_store))
        uri = f"/logstores/{logstore}/substores/{sub_store.get('name', '')}"
        self._request_ok(project, "PUT", uri, self._write_headers(body), body)

    def delete_sub_store(self, project: str, logstore: str, name: str) -> None:
        uri = f"/logstores/{logstore}/substores/{name}"
        self._request_ok(project, "DELETE", uri, self._EMPTY)

    def get_sub_store_ttl(self, project: str, logstore: str) -> int:
        uri = f"/logstores/{logstore}/substores/storage/ttl"
        data = _decode_object(self._request_ok(project, "GET", uri, self._EMPTY))
        try:
            return int(data.get("ttl") or 0)
        except (TypeError, ValueError) as exc:
            raise ClientError(f"invalid ttl: {exc}") from exc

    def update_sub_store_ttl(self, project: str, logstore: str, ttl: int) -> None:
        uri = f"/logstores/{logstore}/substores/storage/ttl?ttl={int(ttl)}"
        self._request_ok(project, "PUT", uri, self._EMPTY)