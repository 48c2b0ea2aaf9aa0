"""Scheduled SQL jobs, their instances and the API that manages them."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, TypeVar
from urllib.parse import urlencode

from slsclient.errors import ClientError
from slsclient.transport import BaseClient, Response

# Earliest accepted start of a scheduled SQL time range (2016-01-01 UTC+8).
MIN_FROM_TIME = 1451577600

_E = TypeVar("_E", bound=Enum)


class SqlType(str, Enum):
    STANDARD = "standard"
    SEARCH_QUERY = "searchQuery"


class ResourcePool(str, Enum):
    DEFAULT = "default"
    ENHANCED = "enhanced"


class DataFormat(str, Enum):
    LOG_TO_LOG = "log2log"
    LOG_TO_METRIC = "log2metric"
    METRIC_TO_METRIC = "metric2metric"


class JobType(str, Enum):
    ALERT = "Alert"
    REPORT = "Report"
    ETL = "ETL"
    INGESTION = "Ingestion"
    REBUILD_INDEX = "RebuildIndex"
    AUDIT_JOB = "AuditJob"
    EXPORT = "Export"
    SCHEDULED_SQL = "ScheduledSQL"


class Status(str, Enum):
    ENABLED = "Enabled"
    DISABLED = "Disabled"


class ScheduledSQLState(str, Enum):
    RUNNING = "RUNNING"
    FAILED = "FAILED"
    SUCCEEDED = "SUCCEEDED"


def _text(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _member(cls: type[_E], value: Any, default: Any) -> Any:
    """The enum member for value, the raw value if unknown, default if missing."""
    if value is None or value == "":
        return default
    try:
        return cls(value)
    except ValueError:
        return value


def _decode_object(response: Response) -> dict[str, Any]:
    data = response.json()
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ClientError("response body must be a JSON object")
    return data


@dataclass
class ScheduledSQLParameters:
    """Extra parameters for metric output; empty entries are left out on the wire."""

    time_key: str = ""
    label_keys: str = ""
    metric_keys: str = ""
    metric_name: str = ""
    hash_labels: str = ""
    add_labels: str = ""

    _WIRE = (
        ("time_key", "timeKey"),
        ("label_keys", "labelKeys"),
        ("metric_keys", "metricKeys"),
        ("metric_name", "metricName"),
        ("hash_labels", "hashLabels"),
        ("add_labels", "addLabels"),
    )

    def to_dict(self) -> dict[str, Any]:
        return {wire: getattr(self, attr) for attr, wire in self._WIRE if getattr(self, attr)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ScheduledSQLParameters":
        return cls(**{attr: data.get(wire) or "" for attr, wire in cls._WIRE})


@dataclass
class ScheduledSQLConfiguration:
    """What a scheduled SQL job reads, runs and writes."""

    source_logstore: str = ""
    dest_project: str = ""
    dest_endpoint: str = ""
    dest_logstore: str = ""
    script: str = ""
    sql_type: SqlType | str = SqlType.STANDARD
    resource_pool: ResourcePool | str = ResourcePool.DEFAULT
    role_arn: str = ""
    dest_role_arn: str = ""
    from_time_expr: str = ""
    to_time_expr: str = ""
    max_run_time_in_seconds: int = 0
    max_retries: int = 0
    from_time: int = 0
    to_time: int = 0
    data_format: DataFormat | str = DataFormat.LOG_TO_LOG
    parameters: ScheduledSQLParameters | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "sourceLogstore": self.source_logstore,
            "destProject": self.dest_project,
            "destEndpoint": self.dest_endpoint,
            "destLogstore": self.dest_logstore,
            "script": self.script,
            "sqlType": _text(self.sql_type),
            "resourcePool": _text(self.resource_pool),
            "roleArn": self.role_arn,
            "destRoleArn": self.dest_role_arn,
            "fromTimeExpr": self.from_time_expr,
            "toTimeExpr": self.to_time_expr,
            "maxRunTimeInSeconds": self.max_run_time_in_seconds,
            "maxRetries": self.max_retries,
            "fromTime": self.from_time,
            "toTime": self.to_time,
            "dataFormat": _text(self.data_format),
        }
        if self.parameters is not None:
            data["parameters"] = self.parameters.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ScheduledSQLConfiguration":
        params = data.get("parameters")
        return cls(
            source_logstore=data.get("sourceLogstore") or "",
            dest_project=data.get("destProject") or "",
            dest_endpoint=data.get("destEndpoint") or "",
            dest_logstore=data.get("destLogstore") or "",
            script=data.get("script") or "",
            sql_type=_member(SqlType, data.get("sqlType"), SqlType.STANDARD),
            resource_pool=_member(ResourcePool, data.get("resourcePool"), ResourcePool.DEFAULT),
            role_arn=data.get("roleArn") or "",
            dest_role_arn=data.get("destRoleArn") or "",
            from_time_expr=data.get("fromTimeExpr") or "",
            to_time_expr=data.get("toTimeExpr") or "",
            max_run_time_in_seconds=int(data.get("maxRunTimeInSeconds") or 0),
            max_retries=int(data.get("maxRetries") or 0),
            from_time=int(data.get("fromTime") or 0),
            to_time=int(data.get("toTime") or 0),
            data_format=_member(DataFormat, data.get("dataFormat"), DataFormat.LOG_TO_LOG),
            parameters=None if params is None else ScheduledSQLParameters.from_dict(params),
        )


@dataclass
class ScheduledSQL:
    """A scheduled SQL job; schedule is the service's schedule object as a mapping."""

    name: str = ""
    display_name: str = ""
    description: str = ""
    status: Status | str = Status.ENABLED
    schedule_id: str = ""
    configuration: ScheduledSQLConfiguration | None = None
    schedule: dict[str, Any] | None = None
    create_time: int = 0
    last_modified_time: int = 0
    type: JobType | str = JobType.SCHEDULED_SQL

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "displayName": self.display_name,
            "description": self.description,
            "status": _text(self.status),
            "scheduleId": self.schedule_id,
            "configuration": None if self.configuration is None else self.configuration.to_dict(),
            "schedule": None if self.schedule is None else dict(self.schedule),
        }
        if self.create_time:
            data["createTime"] = self.create_time
        if self.last_modified_time:
            data["lastModifiedTime"] = self.last_modified_time
        data["type"] = _text(self.type)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ScheduledSQL":
        conf = data.get("configuration")
        schedule = data.get("schedule")
        return cls(
            name=data.get("name") or "",
            display_name=data.get("displayName") or "",
            description=data.get("description") or "",
            status=_member(Status, data.get("status"), ""),
            schedule_id=data.get("scheduleId") or "",
            configuration=None if conf is None else ScheduledSQLConfiguration.from_dict(conf),
            schedule=None if schedule is None else dict(schedule),
            create_time=int(data.get("createTime") or 0),
            last_modified_time=int(data.get("lastModifiedTime") or 0),
            type=_member(JobType, data.get("type"), ""),
        )


@dataclass
class ScheduledSQLJobInstance:
    """One run of a scheduled SQL job."""

    instance_id: str = ""
    job_name: str = ""
    display_name: str = ""
    description: str = ""
    job_schedule_id: str = ""
    create_time_in_millis: int = 0
    schedule_time_in_millis: int = 0
    update_time_in_millis: int = 0
    state: ScheduledSQLState | str = ""
    error_code: str = ""
    error_message: str = ""
    summary: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ScheduledSQLJobInstance":
        return cls(
            instance_id=data.get("instanceId") or "",
            job_name=data.get("jobName") or "",
            display_name=data.get("displayName") or "",
            description=data.get("description") or "",
            job_schedule_id=data.get("jobScheduleId") or "",
            create_time_in_millis=int(data.get("createTimeInMillis") or 0),
            schedule_time_in_millis=int(data.get("scheduleTimeInMillis") or 0),
            update_time_in_millis=int(data.get("updateTimeInMillis") or 0),
            state=_member(ScheduledSQLState, data.get("state"), ""),
            error_code=data.get("errorCode") or "",
            error_message=data.get("errorMessage") or "",
            summary=data.get("summary") or "",
        )


@dataclass
class InstanceStatus:
    """Filter for listing job instances; an empty state matches every state."""

    from_time: int = 0
    to_time: int = 0
    offset: int = 0
    size: int = 0
    state: ScheduledSQLState | str = field(default="")


class ScheduledSQLApi(BaseClient):
    """Create, read, update, delete and list scheduled SQL jobs and their instances."""

    def _send(self, project: str, method: str, uri: str, body: bytes | None = None) -> Response:
        return self._request(project, method, uri, self._json_headers(body), body)

    def create_scheduled_sql(self, project: str, scheduled_sql: ScheduledSQL) -> None:
        """Create a job; its from time must be after 1451577600 and before any to time."""
        conf = scheduled_sql.configuration
        if conf is None:
            raise ValueError("scheduled SQL has no configuration")
        from_time, to_time = conf.from_time, conf.to_time
        time_range = from_time > MIN_FROM_TIME and to_time > from_time
        sustained = from_time > MIN_FROM_TIME and to_time == 0
        if not time_range and not sustained:
            raise ValueError(
                f"invalid fromTime: {from_time} toTime: {to_time}, "
                f"please ensure fromTime more than {MIN_FROM_TIME}"
            )
        self._send(project, "POST", "/jobs", self._encode(scheduled_sql.to_dict()))

    def delete_scheduled_sql(self, project: str, name: str) -> None:
        self._send(project, "DELETE", "/jobs/" + name)

    def update_scheduled_sql(self, project: str, scheduled_sql: ScheduledSQL) -> None:
        body = self._encode(scheduled_sql.to_dict())
        self._send(project, "PUT", "/jobs/" + scheduled_sql.name, body)

    def get_scheduled_sql(self, project: str, name: str) -> ScheduledSQL:
        return ScheduledSQL.from_dict(_decode_object(self._send(project, "GET", "/jobs/" + name)))

    def list_scheduled_sql(
        self, project: str, name: str, display_name: str, offset: int, size: int
    ) -> tuple[list[ScheduledSQL], int, int]:
        """Return (jobs, total, count)."""
        params = {"jobName": name, "jobType": JobType.SCHEDULED_SQL.value}
        if display_name:
            params["displayName"] = display_name
        params["offset"] = str(offset)
        params["size"] = str(size)
        uri = "/jobs?" + urlencode(sorted(params.items()))
        data = _decode_object(self._send(project, "GET", uri))
        jobs = [ScheduledSQL.from_dict(item or {}) for item in data.get("results") or []]
        return jobs, int(data.get("total") or 0), int(data.get("count") or 0)

    def get_scheduled_sql_job_instance(
        self, project: str, job_name: str, instance_id: str, result: bool
    ) -> ScheduledSQLJobInstance:
        flag = "true" if result else "false"
        uri = f"/jobs/{job_name}/jobinstances/{instance_id}?result={flag}"
        return ScheduledSQLJobInstance.from_dict(_decode_object(self._send(project, "GET", uri)))

    def modify_scheduled_sql_job_instance_state(
        self, project: str, job_name: str, instance_id: str, state: ScheduledSQLState | str
    ) -> None:
        """Rerun an instance; RUNNING is the only state that may be set."""
        value = _text(state)
        if value != ScheduledSQLState.RUNNING.value:
            raise ClientError(f"Invalid state: {value}, state must be RUNNING.")
        uri = f"/jobs/{job_name}/jobinstances/{instance_id}?state={value}"
        self._send(project, "PUT", uri)

    def list_scheduled_sql_job_instances(
        self, project: str, job_name: str, status: InstanceStatus
    ) -> tuple[list[ScheduledSQLJobInstance], int, int]:
        """Return (instances, total, count)."""
        params = {
            "jobType": JobType.SCHEDULED_SQL.value,
            "start": str(status.from_time),
            "end": str(status.to_time),
            "offset": str(status.offset),
            "size": str(status.size),
        }
        state = _text(status.state)
        if state:
            params["state"] = state
        uri = f"/jobs/{job_name}/jobinstances?{urlencode(sorted(params.items()))}"
        data = _decode_object(self._send(project, "GET", uri))
        instances = [
            ScheduledSQLJobInstance.from_dict(item or {}) for item in data.get("results") or []
        ]
        return instances, int(data.get("total") or 0), int(data.get("count") or 0)