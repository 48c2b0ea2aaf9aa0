"""The consumer's view of the log service, and the per-shard checkpoint tracker."""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol, Sequence

from slsclient.consumer.config import LogHubConfig
from slsclient.errors import LogServiceError

_LOG = logging.getLogger(__name__)

_RETRIES = 3


class _LogClient(Protocol):
    """The log service operations a consumer needs."""

    def create_consumer_group(self, project: str, logstore: str, group: "ConsumerGroup") -> None: ...

    def heart_beat(
        self, project: str, logstore: str, group_name: str, consumer_name: str, shards: list[int]
    ) -> list[int]: ...

    def update_checkpoint(
        self,
        project: str,
        logstore: str,
        group_name: str,
        consumer_name: str,
        shard_id: int,
        checkpoint: str,
        force_success: bool,
    ) -> None: ...

    def get_checkpoint(self, project: str, logstore: str, group_name: str) -> Sequence[Any]: ...

    def get_cursor(self, project: str, logstore: str, shard_id: int, start: str) -> str: ...

    def pull_logs(
        self, project: str, logstore: str, shard_id: int, cursor: str, end_cursor: str, count: int
    ) -> tuple[Any, str]: ...


@dataclass
class ConsumerGroup:
    """A consumer group as the service knows it; timeout is in seconds."""

    consumer_group_name: str = ""
    timeout: int = 0
    in_order: bool = False


def _checkpoint_fields(item: Any) -> tuple[Any, str]:
    if isinstance(item, Mapping):
        return item.get("shard"), item.get("checkpoint") or ""
    return getattr(item, "shard_id", None), getattr(item, "checkpoint", "") or ""


class ConsumerClient:
    """Runs the consumer group calls of one consumer against the log service."""

    def __init__(self, option: LogHubConfig, log_client: _LogClient, logger: logging.Logger | None = None):
        self.option = option.with_defaults()
        self.log_client = log_client
        self.logger = logger or _LOG
        self.consumer_group = ConsumerGroup(
            consumer_group_name=self.option.consumer_group_name,
            timeout=self.option.heartbeat_interval_in_second * 3,
            in_order=self.option.in_order,
        )

    def create_consumer_group(self) -> None:
        """Create the group; joining an existing group is not an error."""
        try:
            self.log_client.create_consumer_group(
                self.option.project, self.option.logstore, self.consumer_group
            )
        except LogServiceError as err:
            if err.code == "ConsumerGroupAlreadyExist":
                self.logger.info(
                    "New consumer join the consumer group, consumer name: %s, group name: %s",
                    self.option.consumer_name,
                    self.option.consumer_group_name,
                )
            else:
                self.logger.error("create consumer group error: %s", err)
        except Exception as err:  # noqa: BLE001 - creation failures other than service errors are ignored
            self.logger.debug("create consumer group failed: %s", err)

    def heart_beat(self, shards: Sequence[int]) -> list[int]:
        """Report the shards held and return the shards the service assigns."""
        held = self.log_client.heart_beat(
            self.option.project,
            self.option.logstore,
            self.option.consumer_group_name,
            self.option.consumer_name,
            list(shards),
        )
        return list(held or [])

    def update_checkpoint(self, shard_id: int, checkpoint: str, force_success: bool) -> None:
        self.log_client.update_checkpoint(
            self.option.project,
            self.option.logstore,
            self.option.consumer_group_name,
            self.option.consumer_name,
            shard_id,
            checkpoint,
            force_success,
        )

    def get_checkpoint(self, shard_id: int) -> str:
        """The stored checkpoint of a shard, or "" if there is none; retried up to three times."""
        last_error: Exception | None = None
        checkpoints: Sequence[Any] = []
        for _ in range(_RETRIES):
            try:
                checkpoints = self.log_client.get_checkpoint(
                    self.option.project, self.option.logstore, self.consumer_group.consumer_group_name
                )
            except Exception as err:
                last_error = err
                self.logger.info(
                    "shard %s get checkpoint gets errors, starts to try again: %s", shard_id, err
                )
                time.sleep(1)
            else:
                last_error = None
                break
        if last_error is not None:
            raise last_error
        for item in checkpoints or []:
            shard, checkpoint = _checkpoint_fields(item)
            if shard == shard_id:
                return checkpoint
        return ""

    def get_cursor(self, shard_id: int, start: str) -> str:
        return self.log_client.get_cursor(self.option.project, self.option.logstore, shard_id, start)

    def pull_logs(self, shard_id: int, cursor: str) -> tuple[Any, str]:
        """Pull from cursor to the end of the shard; returns (log group list, next cursor)."""
        last_error: Exception | None = None
        for _ in range(_RETRIES):
            try:
                return self.log_client.pull_logs(
                    self.option.project,
                    self.option.logstore,
                    shard_id,
                    cursor,
                    "",
                    self.option.max_fetch_log_group_count,
                )
            except LogServiceError as err:
                last_error = err
                self.logger.warning("shard %s pull logs gets errors, starts to try again: %s", shard_id, err)
                time.sleep(5 if err.http_code == 403 else 0.2)
            except Exception as err:
                last_error = err
                self.logger.warning(
                    "unknown error when pull log, shard %s, cursor %s: %s", shard_id, cursor, err
                )
        assert last_error is not None
        raise last_error


class CheckPointTracker:
    """Keeps the in-memory checkpoint of a shard and persists it when it changes."""

    def __init__(self, shard_id: int, client: ConsumerClient, logger: logging.Logger | None = None):
        self.shard_id = shard_id
        self.client = client
        self.logger = logger or _LOG
        self.flush_interval_sec = 60
        self.temp_checkpoint = ""
        self.last_persistent_checkpoint = ""
        self.last_check_time = 0

    @property
    def checkpoint(self) -> str:
        return self.temp_checkpoint

    def set_memory_checkpoint(self, cursor: str) -> None:
        self.temp_checkpoint = cursor

    def set_persistent_checkpoint(self, cursor: str) -> None:
        self.last_persistent_checkpoint = cursor

    def flush_checkpoint(self) -> None:
        """Persist the in-memory checkpoint if it is set and differs from the stored one."""
        if self.temp_checkpoint and self.temp_checkpoint != self.last_persistent_checkpoint:
            self.client.update_checkpoint(self.shard_id, self.temp_checkpoint, True)
            self.last_persistent_checkpoint = self.temp_checkpoint

    def flush_check(self) -> None:
        """Flush at most once per flush interval; failures are logged, not raised."""
        now = int(time.time())
        if now > self.last_check_time + self.flush_interval_sec:
            try:
                self.flush_checkpoint()
            except Exception as err:
                self.logger.warning("update checkpoint get error: %s", err)
            else:
                self.last_check_time = now