"""Service-wide constants and the ETL meta record."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

VERSION = "0.6.0"
SIGNATURE_METHOD = "hmac-sha1"

# Cursor positions accepted by the service.
OFFSET_NEWEST = "end"
OFFSET_OLDEST = "begin"

PROGRESS_HEADER = "X-Log-Progress"
GET_LOGS_COUNT_HEADER = "X-Log-Count"
REQUEST_ID_HEADER = "x-log-requestid"
GET_LOGS_QUERY_INFO = "X-Log-Query-Info"
HAS_SQL_HEADER = "x-log-has-sql"

ETL_VERSION = 2
ETL_TYPE = "ETL"
ETL_SINKS_TYPE = "AliyunLOG"

ETL_META_URI = "etlmetas"
ETL_META_NAME_URI = "etlmetanames"
ETL_META_ALL_TAG_MATCH = "__all_etl_meta_tag_match__"


@dataclass
class EtlMeta:
    """A named, tagged key/value record used by ETL jobs."""

    meta_name: str = ""
    meta_key: str = ""
    meta_tag: str = ""
    meta_value: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "etlMetaName": self.meta_name,
            "etlMetaKey": self.meta_key,
            "etlMetaTag": self.meta_tag,
            "etlMetaValue": dict(self.meta_value),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EtlMeta":
        return cls(
            meta_name=data.get("etlMetaName") or "",
            meta_key=data.get("etlMetaKey") or "",
            meta_tag=data.get("etlMetaTag") or "",
            meta_value=dict(data.get("etlMetaValue") or {}),
        )