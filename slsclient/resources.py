"""User-defined resources, their schemas and records."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Mapping

from slsclient.errors import ClientError
from slsclient.transport import BaseClient, Response

RESOURCE_TYPE_USER_DEFINE = "userdefine"


def _decode_object(response: Response) -> dict[str, Any]:
    data = response.json()
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ClientError("response body must be a JSON object")
    return data


@dataclass
class ResourceSchemaItem:
    """One column of a resource schema."""

    column: str = ""
    desc: str = ""
    ext_info: Any = None
    required: bool = False
    type: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "column": self.column,
            "desc": self.desc,
            "ext_info": self.ext_info,
            "required": self.required,
            "type": self.type,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ResourceSchemaItem":
        return cls(
            column=data.get("column") or "",
            desc=data.get("desc") or "",
            ext_info=data.get("ext_info"),
            required=bool(data.get("required", False)),
            type=data.get("type") or "",
        )


@dataclass
class ResourceSchema:
    """The column layout of a resource, stored on the resource as a JSON string."""

    schema: list[ResourceSchemaItem] = field(default_factory=list)

    def to_string(self) -> str:
        return json.dumps(
            {"schema": [item.to_dict() for item in self.schema]},
            separators=(",", ":"),
            ensure_ascii=False,
        )

    @classmethod
    def from_json_string(cls, schema: str | bytes) -> "ResourceSchema":
        try:
            data = json.loads(schema)
        except ValueError as exc:
            raise ClientError(str(exc)) from exc
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ClientError("resource schema must be a JSON object")
        items = data.get("schema") or []
        if not isinstance(items, list):
            raise ClientError("resource schema items must be a JSON array")
        return cls(schema=[ResourceSchemaItem.from_dict(item or {}) for item in items])


@dataclass
class Resource:
    """A resource definition."""

    name: str = ""
    type: str = ""
    schema: str = ""
    description: str = ""
    ext_info: str = ""
    create_time: int = 0
    last_modify_time: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "schema": self.schema,
            "description": self.description,
            "extInfo": self.ext_info,
            "createTime": self.create_time,
            "lastModifyTime": self.last_modify_time,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Resource":
        return cls(
            name=data.get("name") or "",
            type=data.get("type") or "",
            schema=data.get("schema") or "",
            description=data.get("description") or "",
            ext_info=data.get("extInfo") or "",
            create_time=int(data.get("createTime") or 0),
            last_modify_time=int(data.get("lastModifyTime") or 0),
        )


@dataclass
class ResourceRecord:
    """One record stored under a resource."""

    id: str = ""
    tag: str = ""
    value: str = ""
    create_time: int = 0
    last_modify_time: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "tag": self.tag,
            "value": self.value,
            "createTime": self.create_time,
            "lastModifyTime": self.last_modify_time,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ResourceRecord":
        return cls(
            id=data.get("id") or "",
            tag=data.get("tag") or "",
            value=data.get("value") or "",
            create_time=int(data.get("createTime") or 0),
            last_modify_time=int(data.get("lastModifyTime") or 0),
        )


class ResourceApi(BaseClient):
    """Manage resources and their records."""

    def _send(self, method: str, uri: str, body: bytes | None = None) -> Response:
        return self._request("", method, uri, self._json_headers(body), body)

    # Resources

    def create_resource_string(self, resource_str: str) -> None:
        self._send("POST", "/resources", resource_str.encode("utf-8"))

    def create_resource(self, resource: Resource) -> None:
        self._send("POST", "/resources", self._encode(resource.to_dict()))

    def update_resource(self, resource: Resource) -> None:
        self._send("PUT", "/resources/" + resource.name, self._encode(resource.to_dict()))

    def update_resource_string(self, resource_name: str, resource_str: str) -> None:
        self._send("PUT", "/resources/" + resource_name, resource_str.encode("utf-8"))

    def delete_resource(self, name: str) -> None:
        self._send("DELETE", "/resources/" + name)

    def get_resource(self, name: str) -> Resource:
        return Resource.from_dict(_decode_object(self._send("GET", "/resources/" + name)))

    def get_resource_string(self, name: str) -> str:
        return self._send("GET", "/resources/" + name).text

    def list_resource(
        self, resource_type: str, resource_name: str, offset: int, size: int
    ) -> tuple[list[Resource], int, int]:
        """Return (resources, count, total)."""
        uri = f"/resources?type={resource_type}&names={resource_name}&offset={offset}&size={size}"
        data = _decode_object(self._send("GET", uri))
        items = [Resource.from_dict(item or {}) for item in data.get("items") or []]
        return items, int(data.get("count") or 0), int(data.get("total") or 0)

    # Records

    def create_resource_record_string(self, resource_name: str, record_str: str) -> None:
        self._send("POST", f"/resources/{resource_name}/records", record_str.encode("utf-8"))

    def create_resource_record(self, resource_name: str, record: ResourceRecord) -> None:
        self._send("POST", f"/resources/{resource_name}/records", self._encode(record.to_dict()))

    def update_resource_record(self, resource_name: str, record: ResourceRecord) -> None:
        self._send(
            "PUT",
            f"/resources/{resource_name}/records/{record.id}",
            self._encode(record.to_dict()),
        )

    def update_resource_record_string(self, resource_name: str, record_str: str) -> None:
        self._send("PUT", f"/resources/{resource_name}/records", record_str.encode("utf-8"))

    def delete_resource_record(self, resource_name: str, record_id: str) -> None:
        self._send("DELETE", f"/resources/{resource_name}/records?ids={record_id}")

    def get_resource_record(self, resource_name: str, record_id: str) -> ResourceRecord:
        response = self._send("GET", f"/resources/{resource_name}/records/{record_id}")
        return ResourceRecord.from_dict(_decode_object(response))

    def get_resource_record_string(self, resource_name: str, record_id: str) -> str:
        return self._send("GET", f"/resources/{resource_name}/records/{record_id}").text

    def list_resource_record(
        self, resource_name: str, offset: int, size: int
    ) -> tuple[list[ResourceRecord], int, int]:
        """Return (records, count, total)."""
        uri = f"/resources/{resource_name}/records?offset={offset}&size={size}"
        data = _decode_object(self._send("GET", uri))
        items = [ResourceRecord.from_dict(item or {}) for item in data.get("items") or []]
        return items, int(data.get("count") or 0), int(data.get("total") or 0)