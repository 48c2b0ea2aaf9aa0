"""Tagging of log service resources."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence
from urllib.parse import urlencode

from slsclient.errors import ClientError
from slsclient.transport import BaseClient


@dataclass
class ResourceTag:
    key: str = ""
    value: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"key": self.key, "value": self.value}


@dataclass
class ResourceFilterTag:
    """A tag filter; a key or value of None matches any."""

    key: str | None = None
    value: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"key": self.key, "value": self.value}


@dataclass
class ResourceTags:
    """Tags to attach to resources; only projects are supported."""

    resource_type: str = ""
    resource_ids: list[str] = field(default_factory=list)
    tags: list[ResourceTag] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "resourceType": self.resource_type,
            "resourceId": list(self.resource_ids),
            "tags": [tag.to_dict() for tag in self.tags],
        }


@dataclass
class ResourceUnTags:
    """Tag keys to remove from resources."""

    resource_type: str = ""
    resource_ids: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "resourceType": self.resource_type,
            "resourceId": list(self.resource_ids),
            "tags": list(self.tags),
        }


@dataclass
class ResourceTagResponse:
    resource_type: str = ""
    resource_id: str = ""
    tag_key: str = ""
    tag_value: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ResourceTagResponse":
        return cls(
            resource_type=data.get("resourceType") or "",
            resource_id=data.get("resourceId") or "",
            tag_key=data.get("tagKey") or "",
            tag_value=data.get("tagValue") or "",
        )


def new_project_tags(project: str, tags: Sequence[ResourceTag]) -> ResourceTags:
    return ResourceTags(resource_type="project", resource_ids=[project], tags=list(tags))


def new_project_untags(project: str, tags: Sequence[str]) -> ResourceUnTags:
    return ResourceUnTags(resource_type="project", resource_ids=[project], tags=list(tags))


def _compact(payload: Any) -> str:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


class TagApi(BaseClient):
    """Tag, untag and list tags of resources."""

    def tag_resources(self, project: str, tags: ResourceTags) -> None:
        body = self._encode(tags.to_dict())
        self._request(project, "POST", "/tag", self._json_headers(body), body)

    def untag_resources(self, project: str, tags: ResourceUnTags) -> None:
        body = self._encode(tags.to_dict())
        self._request(project, "POST", "/untag", self._json_headers(body), body)

    def list_tag_resources(
        self,
        project: str,
        resource_type: str,
        resource_ids: Sequence[str] | None,
        tags: Sequence[ResourceFilterTag] | None,
        next_token: str = "",
    ) -> tuple[list[ResourceTagResponse], str]:
        """Return (tag responses, next token); the token is empty on the last page."""
        params = {
            "tags": _compact(None if tags is None else [tag.to_dict() for tag in tags]),
            "resourceType": resource_type,
            "resourceId": _compact(None if resource_ids is None else list(resource_ids)),
        }
        if next_token:
            params["nextToken"] = next_token
        uri = "/tags?" + urlencode(sorted(params.items()))
        response = self._request(project, "GET", uri, self._json_headers())
        data = response.json()
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ClientError("tag list must be a JSON object")
        items = [ResourceTagResponse.from_dict(item or {}) for item in data.get("tagResources") or []]
        return items, data.get("nextToken") or ""