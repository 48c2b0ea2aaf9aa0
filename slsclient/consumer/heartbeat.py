"""The heartbeat loop that keeps a consumer's shard assignment alive."""

from __future__ import annotations

import logging
import threading
import time

from slsclient.consumer.client import ConsumerClient
from slsclient.consumer.util import dedupe, int_list_equal, sleep_interval_s, subtract

_LOG = logging.getLogger(__name__)


class ConsumerHeartBeat:
    """Reports held shards to the service and records the shards it assigns."""

    def __init__(self, client: ConsumerClient, logger: logging.Logger | None = None):
        self.client = client
        self.logger = logger or _LOG
        self._lock = threading.RLock()
        self._stopped = threading.Event()
        self._held_shards: list[int] = []
        self._heart_shards: list[int] = []
        self.last_heart_beat_success_time = int(time.time())

    @property
    def held_shards(self) -> list[int]:
        with self._lock:
            return list(self._held_shards)

    @held_shards.setter
    def held_shards(self, shards: list[int]) -> None:
        with self._lock:
            self._held_shards = list(shards)

    @property
    def heart_shards(self) -> list[int]:
        with self._lock:
            return list(self._heart_shards)

    @heart_shards.setter
    def heart_shards(self, shards: list[int]) -> None:
        with self._lock:
            self._heart_shards = list(shards)

    @property
    def is_stopped(self) -> bool:
        return self._stopped.is_set()

    def shutdown(self) -> None:
        self.logger.info("try to stop heart beat")
        self._stopped.set()

    def run(self) -> None:
        """Send heartbeats every heartbeat interval until shut down."""
        interval = self.client.option.heartbeat_interval_in_second
        while not self._stopped.is_set():
            last_heart_beat_time = int(time.time())
            with self._lock:
                self._heart_shards = dedupe(self._heart_shards + self._held_shards)
            try:
                response = self.client.heart_beat(self.heart_shards)
            except Exception as err:
                self.logger.warning("send heartbeat error: %s", err)
                timeout = self.client.consumer_group.timeout + interval
                if int(time.time()) - self.last_heart_beat_success_time > timeout:
                    self.held_shards = []
                    self.logger.info("Heart beat timeout, automatic reset consumer held shards")
            else:
                self.last_heart_beat_success_time = int(time.time())
                self.logger.info("heart beat result: %s, get: %s", self.heart_shards, response)
                self.held_shards = response
                if not int_list_equal(self.heart_shards, self.held_shards):
                    current = dedupe(self.heart_shards)
                    assigned = dedupe(self.held_shards)
                    self.logger.info(
                        "shard reorganize, adding: %s, removing: %s",
                        subtract(current, assigned),
                        subtract(assigned, current),
                    )
            sleep_interval_s(interval, last_heart_beat_time, self._stopped.is_set)
        self.logger.info("heart beat exit")

    def remove_heart_shard(self, shard_id: int) -> bool:
        """Stop reporting a shard; True if it was being reported."""
        with self._lock:
            try:
                self._heart_shards.remove(shard_id)
            except ValueError:
                return False
            return True