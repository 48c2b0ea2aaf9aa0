"""The consumer worker that drives one shard worker per assigned shard."""

from __future__ import annotations

import gzip
import json
import logging
import logging.handlers
import os
import shutil
import sys
import threading
import time
from datetime import datetime, timezone
from typing import Any

from slsclient.consumer.client import ConsumerClient
from slsclient.consumer.config import LogHubConfig
from slsclient.consumer.heartbeat import ConsumerHeartBeat
from slsclient.consumer.shard_worker import ProcessFunc, ShardConsumerWorker
from slsclient.consumer.util import contains, sleep_interval_ms

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


def _record_fields(record: logging.LogRecord) -> dict[str, str]:
    stamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
    level = "warn" if record.levelno == logging.WARNING else record.levelname.lower()
    message = record.getMessage()
    if record.exc_info:
        message = f"{message}\n{logging.Formatter().formatException(record.exc_info)}"
    return {
        "time": stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        "level": level,
        "caller": f"{record.filename}:{record.lineno}",
        "msg": message,
    }


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        return json.dumps(_record_fields(record), ensure_ascii=False)


class _LogfmtFormatter(logging.Formatter):
    @staticmethod
    def _value(value: str) -> str:
        if value and not any(ch in value for ch in ' ="\n\t'):
            return value
        return json.dumps(value, ensure_ascii=False)

    def format(self, record: logging.LogRecord) -> str:
        return " ".join(f"{key}={self._value(val)}" for key, val in _record_fields(record).items())


def _gzip_rotator(source: str, dest: str) -> None:
    with open(source, "rb") as src, gzip.open(dest, "wb") as dst:
        shutil.copyfileobj(src, dst)
    os.remove(source)


def configure_logger(option: LogHubConfig) -> logging.Logger:
    """A logger for one consumer, writing to stdout or to a rotating file."""
    name = "slsclient.consumer"
    if option.consumer_name:
        name = f"{name}.{option.consumer_name}"
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handler: logging.Handler
    if not option.log_file_name:
        handler = logging.StreamHandler(sys.stdout)
        use_json = option.is_json_type
    else:
        rotating = logging.handlers.RotatingFileHandler(
            option.log_file_name,
            maxBytes=(option.log_max_size or 10) * 1024 * 1024,
            backupCount=option.log_max_backups or 10,
        )
        if option.log_compress:
            rotating.namer = lambda path: path + ".gz"
            rotating.rotator = _gzip_rotator
        handler = rotating
        use_json = not option.is_json_type
    handler.setFormatter(_JsonFormatter() if use_json else _LogfmtFormatter())
    logger.addHandler(handler)
    logger.setLevel(_LEVELS.get(option.allow_log_level, logging.INFO))
    logger.propagate = False
    return logger


class ConsumerWorker:
    """Consumes the shards a consumer group assigns to this consumer.

    log_client is the log service client that the consumer group calls go
    through; process is called with a shard id and each pulled log group list.
    """

    def __init__(self, option: LogHubConfig, process: ProcessFunc, log_client: Any):
        self.logger = configure_logger(option)
        self.client = ConsumerClient(option, log_client, self.logger)
        self.heart_beat = ConsumerHeartBeat(self.client, self.logger)
        self.process = process
        self._stopped = threading.Event()
        self._lock = threading.Lock()
        self._shard_consumers: dict[int, ShardConsumerWorker] = {}
        self._thread: threading.Thread | None = None
        self.client.create_consumer_group()

    @property
    def shard_consumers(self) -> dict[int, ShardConsumerWorker]:
        with self._lock:
            return dict(self._shard_consumers)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        self._thread = threading.Thread(target=self._run, name="consumer-worker", daemon=True)
        self._thread.start()

    def stop_and_wait(self) -> None:
        """Stop consuming, persist every shard's checkpoint and wait until done."""
        self.logger.info("*** try to exit ***")
        self._stopped.set()
        self.heart_beat.shutdown()
        if self._thread is not None:
            self._thread.join()
        self.logger.info("consumer worker %s stopped", self.client.option.consumer_name)

    def _run(self) -> None:
        self.logger.info("consumer worker %s start", self.client.option.consumer_name)
        heart = threading.Thread(target=self.heart_beat.run, name="consumer-heartbeat", daemon=True)
        heart.start()
        interval = self.client.option.data_fetch_interval_in_ms
        while not self._stopped.is_set():
            held_shards = self.heart_beat.held_shards
            last_fetch_time = time.time_ns() // 1_000_000
            for shard in held_shards:
                if self._stopped.is_set():
                    break
                consumer = self._get_shard_consumer(shard)
                if consumer.is_current_done:
                    consumer.consume()
            self._clean_shard_consumers(held_shards)
            sleep_interval_ms(interval, last_fetch_time, self._stopped.is_set)
        self.logger.info(
            "consumer worker %s try to cleanup consumers", self.client.option.consumer_name
        )
        self._shutdown_and_wait()
        heart.join()

    def _shutdown_and_wait(self) -> None:
        while True:
            time.sleep(0.5)
            consumers = self.shard_consumers
            for shard, consumer in consumers.items():
                if not consumer.is_shutdown_complete():
                    consumer.shutdown()
                else:
                    with self._lock:
                        self._shard_consumers.pop(shard, None)
            if not consumers:
                break

    def _get_shard_consumer(self, shard_id: int) -> ShardConsumerWorker:
        with self._lock:
            consumer = self._shard_consumers.get(shard_id)
            if consumer is None:
                consumer = ShardConsumerWorker(shard_id, self.client, self.process, self.logger)
                self._shard_consumers[shard_id] = consumer
            return consumer

    def _clean_shard_consumers(self, owned_shards: list[int]) -> None:
        for shard, consumer in self.shard_consumers.items():
            if not contains(shard, owned_shards):
                self.logger.info("try to call shut down for unassigned consumer shard %s", shard)
                consumer.shutdown()
                self.logger.info("Complete call shut down for unassigned consumer shard %s", shard)
            if consumer.is_shutdown_complete():
                if self.heart_beat.remove_heart_shard(shard):
                    self.logger.info("Remove an assigned consumer shard %s", shard)
                    with self._lock:
                        self._shard_consumers.pop(shard, None)
                else:
                    self.logger.info("Remove an assigned consumer shard %s failed", shard)