import json

import pytest

from slsclient.errors import ClientError, LogServiceError
from slsclient.etl_job import (
    ETLJob,
    EtlJobApi,
    FunctionConfig,
    JobLogConfig,
    SourceConfig,
    TriggerConfig,
)
from slsclient.transport import Response

JOB_TEMPLATE = """
{
 "etlJobName": "b8be831fac391d65b709e9a4f663e559eaa31e5a",
 "sourceConfig": {
  "logstoreName": "etl-log"
 },
 "triggerConfig": {
  "maxRetryTime": 3,
  "triggerInterval": 60,
  "roleArn": "acs:ram::12345:role/invoke-all"
 },
 "functionConfig": {
  "functionProvider": "FunctionCompute",
  "endpoint": "https://cn-hangzhou-internal.fc.aliyuncs.com",
  "accountId": "12345",
  "regionName": "cn-hangzhou",
  "serviceName": "demo",
  "functionName": "helloworld"
 },
 "functionParameter": PARAM,
 "logConfig": {
  "endpoint": "cn-shanghai.log.aliyuncs.com",
  "projectName": "ali-fc-test",
  "logstoreName": "test"
 },
 "enable": true,
 "createTime": 1506469441,
 "updateTime": 1506469441
}
"""


class FakeTransport:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def __call__(self, project, method, uri, headers, body):
        self.calls.append((project, method, uri, headers, body))
        return self.responses.pop(0)


def test_unmarshal_json_param():
    job = ETLJob.from_json(JOB_TEMPLATE.replace("PARAM", '{"a": "b"}'))
    assert job.function_parameter["a"] == "b"


def test_unmarshal_string_param():
    job = ETLJob.from_json(JOB_TEMPLATE.replace("PARAM", '"{\\"a\\": \\"b\\"}"'))
    assert job.function_parameter["a"] == "b"


def test_nested_configs_decoded():
    job = ETLJob.from_json(JOB_TEMPLATE.replace("PARAM", "{}"))
    assert job.job_name == "b8be831fac391d65b709e9a4f663e559eaa31e5a"
    assert job.source_config == SourceConfig("etl-log")
    assert job.trigger_config.max_retry_time == 3
    assert job.trigger_config.trigger_interval == 60
    assert job.function_config.function_name == "helloworld"
    assert job.log_config.project_name == "ali-fc-test"
    assert job.enable is True
    assert job.create_time == 1506469441


def test_string_param_that_is_not_object_raises():
    with pytest.raises(ClientError):
        ETLJob.from_json(JOB_TEMPLATE.replace("PARAM", '"[1, 2]"'))


def test_to_dict_round_trip():
    job = ETLJob(
        job_name="job",
        source_config=SourceConfig("src"),
        trigger_config=TriggerConfig(max_retry_time=3, role_arn="role"),
        function_config=FunctionConfig(function_name="fn"),
        function_parameter={"k": 1},
        log_config=JobLogConfig(project_name="p"),
        enable=True,
        create_time=5,
        update_time=6,
    )
    assert ETLJob.from_dict(job.to_dict()) == job


def test_to_dict_keeps_missing_configs_as_null():
    data = ETLJob(job_name="x").to_dict()
    assert data["sourceConfig"] is None
    assert data["etlJobName"] == "x"


def test_create_posts_json_body():
    transport = FakeTransport(Response(200))
    api = EtlJobApi(transport)
    job = ETLJob(job_name="j", source_config=SourceConfig("s"))
    api.create_etl_job("proj", job)
    project, method, uri, headers, body = transport.calls[0]
    assert (project, method, uri) == ("proj", "POST", "/etljobs")
    assert headers["x-log-bodyrawsize"] == str(len(body))
    assert headers["Accept-Encoding"] == "deflate"
    assert json.loads(body) == job.to_dict()


def test_update_and_delete_use_job_name_in_uri():
    transport = FakeTransport(Response(200), Response(200))
    api = EtlJobApi(transport)
    api.update_etl_job("proj", "j1", ETLJob(job_name="j1"))
    api.delete_etl_job("proj", "j1")
    assert [(c[1], c[2]) for c in transport.calls] == [("PUT", "/etljobs/j1"), ("DELETE", "/etljobs/j1")]


def test_get_parses_job():
    body = JOB_TEMPLATE.replace("PARAM", '"{\\"a\\": \\"b\\"}"').encode()
    api = EtlJobApi(FakeTransport(Response(200, {}, body)))
    job = api.get_etl_job("proj", "b8be831fac391d65b709e9a4f663e559eaa31e5a")
    assert job.function_parameter == {"a": "b"}


def test_list_returns_names():
    body = json.dumps({"count": 2, "etlJobNameList": ["a", "b"], "total": 2}).encode()
    api = EtlJobApi(FakeTransport(Response(200, {}, body)))
    assert api.list_etl_jobs("proj") == ["a", "b"]


def test_get_missing_job_raises_service_error():
    body = json.dumps({"errorCode": "JobNotExist", "errorMessage": "no job"}).encode()
    api = EtlJobApi(FakeTransport(Response(404, {}, body)))
    with pytest.raises(LogServiceError) as info:
        api.get_etl_job("proj", "missing")
    assert info.value.code == "JobNotExist"