import json
from urllib.parse import parse_qs, urlsplit

import pytest

from slsclient.errors import ClientError, LogServiceError
from slsclient.scheduled_sql import (
    DataFormat,
    InstanceStatus,
    JobType,
    ResourcePool,
    ScheduledSQL,
    ScheduledSQLApi,
    ScheduledSQLConfiguration,
    ScheduledSQLJobInstance,
    ScheduledSQLParameters,
    ScheduledSQLState,
    SqlType,
    Status,
)
from slsclient.transport import Response

PROJECT = "test-scheduled-sql"
JOB_NAME = "schedulesql-1"


def _ok(payload=None):
    body = b"" if payload is None else json.dumps(payload).encode()
    return Response(200, {}, body)


def _not_found(message):
    return Response(404, {}, json.dumps({"errorCode": "JobNotExist", "errorMessage": message}).encode())


class FakeJobService:
    """An in-memory stand-in for the jobs endpoints."""

    def __init__(self):
        self.jobs = {}
        self.instances = {}
        self.calls = []

    def __call__(self, project, method, uri, headers, body):
        self.calls.append((project, method, uri, headers, body))
        parts = urlsplit(uri)
        query = {k: v[0] for k, v in parse_qs(parts.query, keep_blank_values=True).items()}
        segs = parts.path.strip("/").split("/")
        if segs == ["jobs"]:
            if method == "POST":
                job = json.loads(body)
                self.jobs[job["name"]] = job
                return _ok()
            name = query.get("jobName", "")
            results = [j for n, j in self.jobs.items() if not name or n == name]
            return _ok({"total": len(results), "count": len(results), "results": results})
        if len(segs) == 2:
            name = segs[1]
            if name not in self.jobs:
                return _not_found(f"job {name} does not exist")
            if method == "GET":
                return _ok(self.jobs[name])
            if method == "PUT":
                self.jobs[name] = json.loads(body)
                return _ok()
            if method == "DELETE":
                del self.jobs[name]
                return _ok()
        if len(segs) == 3 and segs[2] == "jobinstances":
            items = self.instances.get(segs[1], [])
            state = query.get("state")
            if state:
                items = [i for i in items if i["state"] == state]
            offset, size = int(query["offset"]), int(query["size"])
            page = items[offset : offset + size]
            return _ok({"total": len(items), "count": len(page), "results": page})
        if len(segs) == 4 and segs[2] == "jobinstances":
            for inst in self.instances.get(segs[1], []):
                if inst["instanceId"] == segs[3]:
                    if method == "PUT":
                        inst["state"] = query["state"]
                        return _ok()
                    return _ok(inst)
            return _not_found("instance does not exist")
        return _not_found("unknown path")


@pytest.fixture
def service():
    return FakeJobService()


@pytest.fixture
def api(service):
    return ScheduledSQLApi(service)


def make_scheduled_sql(description, from_time=1700000000, to_time=1700000600):
    return ScheduledSQL(
        name=JOB_NAME,
        display_name="display-1",
        description=description,
        status=Status.ENABLED,
        configuration=ScheduledSQLConfiguration(
            source_logstore="test-source",
            dest_project=PROJECT,
            dest_endpoint="cn-hangzhou.log.aliyuncs.com",
            dest_logstore="test-target",
            script="*|SELECT COUNT(col_0) as value_count",
            sql_type=SqlType.SEARCH_QUERY,
            resource_pool=ResourcePool.DEFAULT,
            from_time_expr="@m-1m",
            to_time_expr="@m",
            max_run_time_in_seconds=60,
            max_retries=20,
            from_time=from_time,
            to_time=to_time,
            data_format=DataFormat.LOG_TO_LOG,
        ),
        schedule={"type": "FixedRate", "interval": "1m", "delay": 10, "dayOfWeek": 0, "hour": 0},
        type=JobType.SCHEDULED_SQL,
    )


def test_create_and_delete(api, service):
    api.create_scheduled_sql(PROJECT, make_scheduled_sql("111"))
    assert JOB_NAME in service.jobs
    api.delete_scheduled_sql(PROJECT, JOB_NAME)
    assert service.jobs == {}
    with pytest.raises(LogServiceError) as info:
        api.get_scheduled_sql(PROJECT, JOB_NAME)
    assert info.value.code == "JobNotExist"
    assert info.value.http_code == 404


def test_update_and_get(api):
    api.create_scheduled_sql(PROJECT, make_scheduled_sql("111"))
    job = api.get_scheduled_sql(PROJECT, JOB_NAME)
    assert job.name == JOB_NAME
    assert job.description == "111"
    api.update_scheduled_sql(PROJECT, make_scheduled_sql("222"))
    job2 = api.get_scheduled_sql(PROJECT, JOB_NAME)
    assert job2.name == JOB_NAME
    assert job2.description == "222"
    assert job2.configuration.sql_type is SqlType.SEARCH_QUERY


def test_list(api, service):
    api.create_scheduled_sql(PROJECT, make_scheduled_sql("111"))
    jobs, total, count = api.list_scheduled_sql(PROJECT, "", "", 0, 10)
    assert len(jobs) == 1
    assert total == 1
    assert count == 1
    assert jobs[0].name == JOB_NAME
    uri = service.calls[-1][2]
    query = parse_qs(urlsplit(uri).query, keep_blank_values=True)
    assert query["jobType"] == ["ScheduledSQL"]
    assert "displayName" not in query
    assert query["offset"] == ["0"] and query["size"] == ["10"]


def test_list_includes_display_name_when_given(api, service):
    api.list_scheduled_sql(PROJECT, JOB_NAME, "display-1", 0, 10)
    query = parse_qs(urlsplit(service.calls[-1][2]).query)
    assert query["displayName"] == ["display-1"]
    assert query["jobName"] == [JOB_NAME]


def test_instances(api, service):
    api.create_scheduled_sql(PROJECT, make_scheduled_sql("111"))
    service.instances[JOB_NAME] = [
        {"instanceId": f"inst-{i}", "state": "SUCCEEDED", "jobName": JOB_NAME} for i in range(5)
    ]
    status = InstanceStatus(
        from_time=1700000000, to_time=1700001200, offset=0, size=3, state=ScheduledSQLState.SUCCEEDED
    )
    instances, total, count = api.list_scheduled_sql_job_instances(PROJECT, JOB_NAME, status)
    assert len(instances) == 3
    assert count == 3
    assert total > 3
    instance = instances[0]
    job_instance = api.get_scheduled_sql_job_instance(PROJECT, JOB_NAME, instance.instance_id, True)
    assert job_instance.state is ScheduledSQLState.SUCCEEDED
    assert "result=true" in service.calls[-1][2]
    api.modify_scheduled_sql_job_instance_state(
        PROJECT, JOB_NAME, instance.instance_id, ScheduledSQLState.RUNNING
    )
    job_instance2 = api.get_scheduled_sql_job_instance(PROJECT, JOB_NAME, instance.instance_id, True)
    assert job_instance2.state != ScheduledSQLState.SUCCEEDED
    assert job_instance2.state is ScheduledSQLState.RUNNING


def test_instance_list_without_state(api, service):
    instances, total, count = api.list_scheduled_sql_job_instances(PROJECT, JOB_NAME, InstanceStatus(size=3))
    assert instances == []
    assert (total, count) == (0, 0)
    query = parse_qs(urlsplit(service.calls[-1][2]).query)
    assert "state" not in query
    assert query["start"] == ["0"]
    assert query["jobType"] == ["ScheduledSQL"]


@pytest.mark.parametrize(
    "from_time,to_time",
    [(1451577600, 0), (100, 200), (1700000600, 1700000000), (1700000000, 1700000000)],
)
def test_create_rejects_bad_time_range(api, service, from_time, to_time):
    with pytest.raises(ValueError) as info:
        api.create_scheduled_sql(PROJECT, make_scheduled_sql("x", from_time, to_time))
    assert "1451577600" in str(info.value)
    assert service.calls == []


def test_create_allows_sustained_job(api, service):
    api.create_scheduled_sql(PROJECT, make_scheduled_sql("x", 1700000000, 0))
    assert service.jobs[JOB_NAME]["configuration"]["toTime"] == 0
    job = api.get_scheduled_sql(PROJECT, JOB_NAME)
    assert job.configuration.from_time == 1700000000
    assert job.configuration.to_time == 0


def test_create_sends_body_size_header(api, service):
    api.create_scheduled_sql(PROJECT, make_scheduled_sql("111"))
    project, method, uri, headers, body = service.calls[0]
    assert (project, method, uri) == (PROJECT, "POST", "/jobs")
    assert headers["x-log-bodyrawsize"] == str(len(body))
    assert headers["Content-Type"] == "application/json"


def test_modify_rejects_other_states(api, service):
    with pytest.raises(ClientError) as info:
        api.modify_scheduled_sql_job_instance_state(PROJECT, JOB_NAME, "i", ScheduledSQLState.FAILED)
    assert "Invalid state: FAILED, state must be RUNNING." in str(info.value)
    assert service.calls == []


def test_to_dict_omits_empty_optional_fields():
    data = make_scheduled_sql("111").to_dict()
    assert "createTime" not in data
    assert "lastModifiedTime" not in data
    assert "parameters" not in data["configuration"]
    assert data["type"] == "ScheduledSQL"
    assert data["status"] == "Enabled"
    assert data["configuration"]["sqlType"] == "searchQuery"
    assert data["configuration"]["dataFormat"] == "log2log"


def test_parameters_omit_empty_entries():
    params = ScheduledSQLParameters(time_key="time", metric_name="m")
    assert params.to_dict() == {"timeKey": "time", "metricName": "m"}
    assert ScheduledSQLParameters.from_dict(params.to_dict()) == params


def test_configuration_defaults():
    conf = ScheduledSQLConfiguration()
    assert conf.sql_type is SqlType.STANDARD
    assert conf.resource_pool is ResourcePool.DEFAULT
    assert conf.data_format is DataFormat.LOG_TO_LOG
    assert conf.from_time == 0 and conf.to_time == 0


def test_scheduled_sql_round_trip():
    job = make_scheduled_sql("111")
    job.create_time = 1700000001
    job.configuration.parameters = ScheduledSQLParameters(label_keys="a,b")
    assert ScheduledSQL.from_dict(job.to_dict()) == job


def test_job_instance_keeps_unknown_state():
    inst = ScheduledSQLJobInstance.from_dict({"instanceId": "i1", "state": "PENDING"})
    assert inst.instance_id == "i1"
    assert inst.state == "PENDING"