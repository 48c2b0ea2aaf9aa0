# slsclient

A Python library for a hosted log service. It covers two areas.

- **Management calls**: user-defined resources and their records, project tags, shard split and merge, cursor times, sub-stores and their TTL, ETL jobs, and scheduled SQL jobs with their instances.
- **A consumer-group library**: it joins a consumer group, keeps a heartbeat, takes over the shards the service assigns, pulls log groups, hands them to your callback and saves checkpoints.

The package uses only the standard library.

## What the package does not do

- **No HTTP, no signing.** Every management call goes through a transport that you supply (see below). The package builds URIs, headers and JSON bodies and decodes the responses. It does not know endpoints or credentials, and it does not sign or send requests.
- **No consumer-group service calls.** The consumer library also needs a log client that you supply. That client creates the group, sends heartbeats, reads and writes checkpoints, gets cursors and pulls logs. `slsclient.client.Client` does not provide these calls.
- **Some services are not covered.** There is nothing for writing logs or querying them, for managing projects, logstores or indexes, or for encoding log groups.
- **No command-line tool.**

## The transport

A transport is any callable `transport(project, method, uri, headers, body)` that returns a `slsclient.transport.Response`:

- `status_code` is the HTTP status code.
- `headers` is a mapping of the response headers.
- `body` is the response body as bytes.

```python
from slsclient.transport import Response


def transport(project, method, uri, headers, body):
    # Sign and send the request for `project`, then wrap what came back.
    status, response_headers, payload = send_somehow(project, method, uri, headers, body)
    return Response(status_code=status, headers=response_headers, body=payload)
```

## The client

`slsclient.client.Client(transport)` brings all the management calls together.

```python
from slsclient.client import Client
from slsclient.resources import Resource, ResourceSchema, ResourceSchemaItem, RESOURCE_TYPE_USER_DEFINE

client = Client(transport)

schema = ResourceSchema(schema=[
    ResourceSchemaItem(column="col1", desc="col1 desc", ext_info={}, required=True, type="string"),
    ResourceSchemaItem(column="col2", desc="col2 desc", ext_info="optional", required=True, type="string"),
])
client.create_resource(Resource(
    name="user.test_resource_1",
    type=RESOURCE_TYPE_USER_DEFINE,
    schema=schema.to_string(),
    description="a user-defined resource",
))

resource = client.get_resource("user.test_resource_1")
columns = ResourceSchema.from_json_string(resource.schema).schema
resources, count, total = client.list_resource(RESOURCE_TYPE_USER_DEFINE, "user.test_resource_1", 0, 100)
```

### Modules

| Module | What it holds |
|---|---|
| `slsclient.resources` | `Resource`, `ResourceSchema`, `ResourceSchemaItem` and `ResourceRecord`, plus `ResourceApi`, which can create, update, delete, get and list resources and their records. Each of these calls comes in a typed form and a raw JSON string form. |
| `slsclient.tags` | The `ResourceTag`, `ResourceFilterTag`, `ResourceTags` and `ResourceUnTags` types, the `new_project_tags` and `new_project_untags` helpers, and `TagApi`. `TagApi.list_tag_resources` returns `(tags, next_token)`. |
| `slsclient.store` | `StoreApi`. Shard calls: `split_shard`, `split_num_shard` and `merge_shards`, which return the resulting shards as dicts. Cursor calls: `get_cursor_time` and `get_prev_cursor_time`, which return UTC `datetime`s. Sub-store calls: list, get, create, update and delete sub-stores, which are plain mappings, and get or update their TTL. |
| `slsclient.etl_job` | `ETLJob` with its `SourceConfig`, `TriggerConfig`, `FunctionConfig` and `JobLogConfig`, and `EtlJobApi`. |
| `slsclient.scheduled_sql` | `ScheduledSQL`, `ScheduledSQLConfiguration`, `ScheduledSQLParameters`, `ScheduledSQLJobInstance` and `InstanceStatus`, the enums `SqlType`, `ResourcePool`, `DataFormat`, `JobType`, `Status` and `ScheduledSQLState`, and `ScheduledSQLApi`. |
| `slsclient.config` | Service constants such as `OFFSET_OLDEST` and `OFFSET_NEWEST`, and `EtlMeta`. |

Some behaviour to know about:

- The list calls return tuples. `list_resource` and `list_resource_record` return `(items, count, total)`. `list_scheduled_sql` and `list_scheduled_sql_job_instances` return `(items, total, count)`.
- `ETLJob.from_json` and `ETLJob.from_dict` accept `functionParameter` in either form: as a JSON object, or as a string that holds a JSON object.
- `create_scheduled_sql` checks the job's time window before it sends anything. It raises `ValueError` if `from_time` is at or before 1451577600. It also raises `ValueError` if `to_time` is neither 0 nor later than `from_time`.
- `modify_scheduled_sql_job_instance_state` accepts only `ScheduledSQLState.RUNNING`.
- `get_prev_cursor_time` decodes the base64 cursor, steps it back by one, and asks for the time of that position.

### Errors

These exceptions live in `slsclient.errors`:

| Exception | When it is raised |
|---|---|
| `LogServiceError` | A non-2xx response whose body is a JSON error object. It carries `code`, `message`, `request_id` and `http_code`. |
| `BadResponseError` | A non-2xx response whose body is not such an object. It carries `resp_body`, `resp_header` and `http_code`. |
| `ClientError` | A successful response whose body cannot be decoded into what was expected, or an argument the client rejects. |

The sub-store calls in `StoreApi` also treat any status other than 200 as an error.

## The consumer library

```python
from slsclient.consumer.config import CursorPosition, LogHubConfig
from slsclient.consumer.worker import ConsumerWorker

option = LogHubConfig(
    project="my-project",
    logstore="my-logstore",
    consumer_group_name="my-group",
    consumer_name="consumer-1",
    cursor_position=CursorPosition.BEGIN_CURSOR,
)


def process(shard_id, log_group_list):
    for group in log_group_list.log_groups:
        ...
    return ""  # return a cursor to roll back to it, or "" to carry on


worker = ConsumerWorker(option, process, log_client)
worker.start()
...
worker.stop_and_wait()
```

### The log client

`log_client` must provide the following methods:

| Method | Returns |
|---|---|
| `create_consumer_group(project, logstore, group)` | nothing; `group` is a `slsclient.consumer.client.ConsumerGroup` |
| `heart_beat(project, logstore, group_name, consumer_name, shards)` | the list of assigned shard ids |
| `update_checkpoint(project, logstore, group_name, consumer_name, shard_id, checkpoint, force_success)` | nothing |
| `get_checkpoint(project, logstore, group_name)` | a sequence of checkpoints; each is either a mapping with `"shard"` and `"checkpoint"` keys, or an object with `shard_id` and `checkpoint` attributes |
| `get_cursor(project, logstore, shard_id, start)` | a cursor; `start` is `"begin"`, `"end"` or a Unix time in seconds |
| `pull_logs(project, logstore, shard_id, cursor, end_cursor, count)` | `(log_group_list, next_cursor)`; the list must have a `log_groups` sequence, and each group must have a `logs` sequence |

Some error handling to know about:

- If the group already exists, `create_consumer_group` may raise `LogServiceError` with code `ConsumerGroupAlreadyExist`. The consumer treats this as joining the group.
- `get_checkpoint` and `pull_logs` are tried up to three times.

### How the worker behaves

- **Shards.** A heartbeat thread reports the held shards every heartbeat interval. If heartbeats fail for longer than the group timeout plus one interval, the held shards are dropped. The group timeout is three heartbeat intervals. The worker runs one `slsclient.consumer.shard_worker.ShardConsumerWorker` per held shard. That worker cycles through initialise, pull and process, one background step at a time.
- **Starting position.** A shard with no stored checkpoint starts from `cursor_position`:
  - `BEGIN_CURSOR` starts at the beginning.
  - `END_CURSOR` starts at the end.
  - `SPECIAL_TIMER_CURSOR` starts at `cursor_start_time`.
- **Throttling.** Pulls are throttled by how many log groups the previous pull returned.
- **Your callback.** If `process` raises, it is logged and retried every two seconds until it succeeds.
- **Checkpoints.** After processing, the checkpoint is flushed at most once every 60 seconds. It is also flushed when a shard has returned no data for 30 seconds.
- **Shutdown.** `stop_and_wait` stops the heartbeat and saves the last checkpoint of every shard. If a pulled batch was never processed, the cursor saved for that shard is the one the batch was read from. The call then waits for the worker thread.

### Defaults

`LogHubConfig.with_defaults` fills in unset values:

| Setting | Default |
|---|---|
| `heartbeat_interval_in_second` | 20 seconds |
| `data_fetch_interval_in_ms` | 200 ms |
| `max_fetch_log_group_count` | 1000 |

`endpoint`, `access_key_id`, `access_key_secret` and `security_token` are kept on the config, but the consumer does not use them. Connecting is the log client's job.

### Logging

`slsclient.consumer.worker.configure_logger(option)` builds the worker's logger.

- **Level.** `allow_log_level` is one of `debug`, `info`, `warn` or `error`. The default is `info`.
- **Output to stdout.** With no `log_file_name`, the logger writes to stdout. It uses logfmt, or JSON when `is_json_type` is set.
- **Output to a file.** With a `log_file_name`, the logger writes to a rotating file. Here the format is the other way round: JSON by default, logfmt when `is_json_type` is set.
  - Files rotate at `log_max_size` MB. The default is 10.
  - Up to `log_max_backups` old files are kept. The default is 10.
  - When `log_compress` is set, old files are gzipped.

### Helpers

The helpers in `slsclient.consumer.util` can be used on their own:

```python
from slsclient.consumer.util import contains, dedupe, int_list_equal, subtract

dedupe([1, 1, 2, 2, 3, 3])         # [1, 2, 3]
subtract([0, 1, 2], [1, 2, 3])     # [3]
int_list_equal(None, [])           # True
contains(2, [1, 2, 3])             # True
```

The module also has `get_log_count`, `get_log_group_count`, `sleep_interval_ms` and `sleep_interval_s`.