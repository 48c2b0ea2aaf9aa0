"""Consumer group settings and the states a shard worker goes through."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import Enum


class CursorPosition(str, Enum):
    """Where a shard starts when the group has no checkpoint for it."""

    BEGIN_CURSOR = "BEGIN_CURSOR"
    END_CURSOR = "END_CURSOR"
    SPECIAL_TIMER_CURSOR = "SPECIAL_TIMER_CURSOR"


class ConsumerStatus(str, Enum):
    INITIALIZING = "INITIALIZING"
    INITIALIZING_DONE = "INITIALIZING_DONE"
    PULL_PROCESSING = "PULL_PROCESSING"
    PULL_PROCESSING_DONE = "PULL_PROCESSING_DONE"
    CONSUME_PROCESSING = "CONSUME_PROCESSING"
    CONSUME_PROCESSING_DONE = "CONSUME_PROCESSING_DONE"
    SHUTDOWN_COMPLETE = "SHUTDOWN_COMPLETE"


@dataclass
class LogHubConfig:
    """Settings of one consumer in a consumer group.

    A zero heartbeat interval, fetch interval or fetch count means the default;
    see with_defaults. cursor_start_time is a Unix time in seconds used with
    SPECIAL_TIMER_CURSOR. allow_log_level is one of debug, info, warn, error.
    """

    endpoint: str = ""
    access_key_id: str = ""
    access_key_secret: str = ""
    project: str = ""
    logstore: str = ""
    consumer_group_name: str = ""
    consumer_name: str = ""
    cursor_position: str = ""
    heartbeat_interval_in_second: int = 0
    data_fetch_interval_in_ms: int = 0
    max_fetch_log_group_count: int = 0
    cursor_start_time: int = 0
    in_order: bool = False
    allow_log_level: str = ""
    log_file_name: str = ""
    is_json_type: bool = False
    log_max_size: int = 0
    log_max_backups: int = 0
    log_compress: bool = False
    security_token: str = ""

    def with_defaults(self) -> "LogHubConfig":
        """A copy with the unset intervals and fetch count filled in."""
        return dataclasses.replace(
            self,
            heartbeat_interval_in_second=self.heartbeat_interval_in_second or 20,
            data_fetch_interval_in_ms=self.data_fetch_interval_in_ms or 200,
            max_fetch_log_group_count=self.max_fetch_log_group_count or 1000,
        )