"""ETL jobs used by function-compute triggers, and their project API."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from typing import Any, Mapping, TypeVar

from slsclient.errors import ClientError
from slsclient.transport import BaseClient

_T = TypeVar("_T")


def _wire(name: str, default: Any) -> Any:
    return field(default=default, metadata={"json": name})


def _plain_to_dict(obj: Any) -> dict[str, Any]:
    return {f.metadata["json"]: getattr(obj, f.name) for f in fields(obj)}


def _plain_from_dict(cls: type[_T], data: Mapping[str, Any] | None) -> _T | None:
    if data is None:
        return None
    kwargs = {
        f.name: data[f.metadata["json"]]
        for f in fields(cls)  # type: ignore[arg-type]
        if data.get(f.metadata["json"]) is not None
    }
    return cls(**kwargs)


@dataclass
class SourceConfig:
    logstore_name: str = _wire("logstoreName", "")


@dataclass
class TriggerConfig:
    max_retry_time: int = _wire("maxRetryTime", 0)
    trigger_interval: int = _wire("triggerInterval", 0)
    role_arn: str = _wire("roleArn", "")
    starting_position: str = _wire("startingPosition", "")
    starting_unixtime: int = _wire("startingUnixtime", 0)


@dataclass
class FunctionConfig:
    function_provider: str = _wire("functionProvider", "")
    endpoint: str = _wire("endpoint", "")
    account_id: str = _wire("accountId", "")
    region_name: str = _wire("regionName", "")
    service_name: str = _wire("serviceName", "")
    function_name: str = _wire("functionName", "")
    role_arn: str = _wire("roleArn", "")


@dataclass
class JobLogConfig:
    endpoint: str = _wire("endpoint", "")
    project_name: str = _wire("projectName", "")
    logstore_name: str = _wire("logstoreName", "")


@dataclass
class ETLJob:
    """An ETL job definition."""

    job_name: str = ""
    source_config: SourceConfig | None = None
    trigger_config: TriggerConfig | None = None
    function_config: FunctionConfig | None = None
    function_parameter: Any = None
    log_config: JobLogConfig | None = None
    enable: bool = False
    create_time: int = 0
    update_time: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ETLJob":
        """Decode a job; a function parameter given as a JSON string is decoded too."""
        param = data.get("functionParameter")
        if isinstance(param, str):
            try:
                decoded = json.loads(param)
            except ValueError as exc:
                raise ClientError(f"invalid functionParameter: {exc}") from exc
            if decoded is None:
                decoded = {}
            if not isinstance(decoded, dict):
                raise ClientError("functionParameter must encode a JSON object")
            param = decoded
        return cls(
            job_name=data.get("etlJobName") or "",
            source_config=_plain_from_dict(SourceConfig, data.get("sourceConfig")),
            trigger_config=_plain_from_dict(TriggerConfig, data.get("triggerConfig")),
            function_config=_plain_from_dict(FunctionConfig, data.get("functionConfig")),
            function_parameter=param,
            log_config=_plain_from_dict(JobLogConfig, data.get("logConfig")),
            enable=bool(data.get("enable", False)),
            create_time=int(data.get("createTime") or 0),
            update_time=int(data.get("updateTime") or 0),
        )

    @classmethod
    def from_json(cls, text: str | bytes) -> "ETLJob":
        try:
            data = json.loads(text)
        except ValueError as exc:
            raise ClientError(str(exc)) from exc
        if not isinstance(data, dict):
            raise ClientError("ETL job must be a JSON object")
        return cls.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        def sub(obj: Any) -> dict[str, Any] | None:
            return None if obj is None else _plain_to_dict(obj)

        return {
            "etlJobName": self.job_name,
            "sourceConfig": sub(self.source_config),
            "triggerConfig": sub(self.trigger_config),
            "functionConfig": sub(self.function_config),
            "functionParameter": self.function_parameter,
            "logConfig": sub(self.log_config),
            "enable": self.enable,
            "createTime": self.create_time,
            "updateTime": self.update_time,
        }


class EtlJobApi(BaseClient):
    """Create, read, update, delete and list ETL jobs of a project."""

    def _write_headers(self, body: bytes) -> dict[str, str]:
        headers = self._json_headers(body)
        headers["Accept-Encoding"] = "deflate"
        return headers

    def create_etl_job(self, project: str, job: ETLJob) -> None:
        body = self._encode(job.to_dict())
        self._request(project, "POST", "/etljobs", self._write_headers(body), body)

    def get_etl_job(self, project: str, name: str) -> ETLJob:
        response = self._request(project, "GET", "/etljobs/" + name, {"x-log-bodyrawsize": "0"})
        return ETLJob.from_json(response.body)

    def update_etl_job(self, project: str, name: str, job: ETLJob) -> None:
        """Update a job; the service does not allow every field to change."""
        body = self._encode(job.to_dict())
        self._request(project, "PUT", "/etljobs/" + name, self._write_headers(body), body)

    def delete_etl_job(self, project: str, name: str) -> None:
        self._request(project, "DELETE", "/etljobs/" + name, {"x-log-bodyrawsize": "0"})

    def list_etl_jobs(self, project: str) -> list[str]:
        response = self._request(project, "GET", "/etljobs", {"x-log-bodyrawsize": "0"})
        data = response.json()
        if not isinstance(data, dict):
            raise ClientError("job list must be a JSON object")
        return list(data.get("etlJobNameList") or [])