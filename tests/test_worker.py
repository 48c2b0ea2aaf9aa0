import json
import logging
import time
from types import SimpleNamespace

from slsclient.consumer.config import CursorPosition, LogHubConfig
from slsclient.consumer.worker import ConsumerWorker, configure_logger


def _close(logger):
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


class FailingLogClient:
    def __init__(self):
        self.created = 0

    def create_consumer_group(self, project, logstore, group):
        self.created += 1
        raise RuntimeError("no endpoint")

    def heart_beat(self, project, logstore, group_name, consumer_name, shards):
        raise RuntimeError("no endpoint")

    def update_checkpoint(self, *args):
        raise RuntimeError("no endpoint")

    def get_checkpoint(self, project, logstore, group_name):
        raise RuntimeError("no endpoint")

    def get_cursor(self, project, logstore, shard_id, start):
        raise RuntimeError("no endpoint")

    def pull_logs(self, *args):
        raise RuntimeError("no endpoint")


class WorkingLogClient:
    def __init__(self):
        self.updates = []
        self.pulled = False

    def create_consumer_group(self, project, logstore, group):
        pass

    def heart_beat(self, project, logstore, group_name, consumer_name, shards):
        return [0]

    def update_checkpoint(self, project, logstore, group, consumer, shard_id, checkpoint, force):
        self.updates.append((shard_id, checkpoint))

    def get_checkpoint(self, project, logstore, group_name):
        return []

    def get_cursor(self, project, logstore, shard_id, start):
        return "cursor-" + start

    def pull_logs(self, project, logstore, shard_id, cursor, end_cursor, count):
        if not self.pulled:
            self.pulled = True
            return SimpleNamespace(log_groups=[SimpleNamespace(logs=[{}])]), "cursor-1"
        return SimpleNamespace(log_groups=[]), "cursor-1"


def test_start_and_stop():
    option = LogHubConfig(cursor_position=CursorPosition.BEGIN_CURSOR, consumer_name="start-stop")
    fake = FailingLogClient()
    worker = ConsumerWorker(option, lambda shard, groups: "", fake)
    worker.start()
    worker.stop_and_wait()
    assert not worker.running
    assert worker.shard_consumers == {}
    assert fake.created == 1
    _close(worker.logger)


def test_worker_consumes_assigned_shard_and_flushes():
    option = LogHubConfig(
        consumer_group_name="group",
        consumer_name="consumer-1",
        cursor_position=CursorPosition.BEGIN_CURSOR,
        heartbeat_interval_in_second=1,
        data_fetch_interval_in_ms=50,
        allow_log_level="error",
    )
    fake = WorkingLogClient()
    processed = []
    worker = ConsumerWorker(option, lambda shard, groups: processed.append(shard) or "", fake)
    worker.start()
    deadline = time.monotonic() + 10
    while not processed and time.monotonic() < deadline:
        time.sleep(0.02)
    worker.stop_and_wait()
    assert processed[0] == 0
    assert (0, "cursor-1") in fake.updates
    assert worker.shard_consumers == {}
    assert not worker.running
    _close(worker.logger)


def test_json_logger_writes_to_stdout(capsys):
    logger = configure_logger(LogHubConfig(consumer_name="json-out", is_json_type=True))
    logger.info("hello")
    line = capsys.readouterr().out.strip().splitlines()[-1]
    record = json.loads(line)
    assert record["msg"] == "hello"
    assert record["level"] == "info"
    _close(logger)


def test_logfmt_logger_writes_to_stdout(capsys):
    logger = configure_logger(LogHubConfig(consumer_name="logfmt-out"))
    logger.warning("two words")
    out = capsys.readouterr().out
    assert 'msg="two words"' in out
    assert "level=warn" in out
    _close(logger)


def test_file_logger_format_choice(tmp_path):
    path = tmp_path / "consumer.log"
    logger = configure_logger(LogHubConfig(consumer_name="file-a", log_file_name=str(path)))
    logger.info("to file")
    _close(logger)
    assert json.loads(path.read_text().strip())["msg"] == "to file"

    other = tmp_path / "other.log"
    logger = configure_logger(
        LogHubConfig(consumer_name="file-b", log_file_name=str(other), is_json_type=True)
    )
    logger.info("plain")
    _close(logger)
    assert "msg=plain" in other.read_text()


def test_logger_levels():
    logger = configure_logger(LogHubConfig(consumer_name="levels", allow_log_level="error"))
    assert logger.level == logging.ERROR
    _close(logger)
    logger = configure_logger(LogHubConfig(consumer_name="levels", allow_log_level="verbose"))
    assert logger.level == logging.INFO
    assert len(logger.handlers) == 1
    _close(logger)