"""The state machine that consumes one shard of a logstore."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable

from slsclient.consumer.client import CheckPointTracker, ConsumerClient
from slsclient.consumer.config import ConsumerStatus, CursorPosition
from slsclient.consumer.util import get_log_count, get_log_group_count

_LOG = logging.getLogger(__name__)

ProcessFunc = Callable[[int, Any], "str | None"]

# Seconds without new data after which the checkpoint is persisted anyway.
_FORCE_FLUSH_AFTER = 30


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class ShardConsumerWorker:
    """Initialises, pulls and processes one shard, one background step at a time.

    Each call to consume starts the next step of the cycle in a thread; the
    caller calls it again once is_current_done is true. process receives the
    shard id and the pulled log group list and may return a cursor to roll
    back to, or an empty string.
    """

    def __init__(
        self,
        shard_id: int,
        client: ConsumerClient,
        process: ProcessFunc,
        logger: logging.Logger | None = None,
    ):
        self.shard_id = shard_id
        self.client = client
        self.process = process
        self.logger = logger or _LOG
        self.tracker = CheckPointTracker(shard_id, client, self.logger)
        self._lock = threading.Lock()
        self._status = ConsumerStatus.INITIALIZING
        self._current_done = True
        self._flush_done = True
        self.shutdown_requested = False
        self.last_fetch_log_group_list: Any = None
        self.next_fetch_cursor = ""
        self.last_fetch_group_count = 0
        self.last_fetch_time_ms = 0
        self.temp_checkpoint = ""
        self.last_fetch_time_for_force_flush = 0
        self.rollback_checkpoint = ""

    # Shared state

    @property
    def status(self) -> ConsumerStatus:
        with self._lock:
            return self._status

    @status.setter
    def status(self, value: ConsumerStatus) -> None:
        with self._lock:
            self._status = value

    @property
    def is_current_done(self) -> bool:
        with self._lock:
            return self._current_done

    def _set_current_done(self, done: bool) -> None:
        with self._lock:
            self._current_done = done

    @property
    def is_flush_checkpoint_done(self) -> bool:
        with self._lock:
            return self._flush_done

    def _set_flush_done(self, done: bool) -> None:
        with self._lock:
            self._flush_done = done

    def _spawn(self, target: Callable[[], None]) -> None:
        threading.Thread(target=target, name=f"shard-{self.shard_id}", daemon=True).start()

    # The cycle

    def consume(self) -> None:
        """Start the next step for the current status."""
        if self.shutdown_requested:
            self._set_flush_done(False)
            self._spawn(self._shutdown_task)
            return
        status = self.status
        if status is ConsumerStatus.INITIALIZING:
            self._set_current_done(False)
            self._spawn(self._initialize_step)
        elif status in (ConsumerStatus.INITIALIZING_DONE, ConsumerStatus.CONSUME_PROCESSING_DONE):
            self._set_current_done(False)
            self.status = ConsumerStatus.PULL_PROCESSING
            self._spawn(self._fetch_step)
        elif status is ConsumerStatus.PULL_PROCESSING_DONE:
            self._set_current_done(False)
            self.status = ConsumerStatus.CONSUME_PROCESSING
            self._spawn(self._process_step)

    def shutdown(self) -> None:
        """Ask the worker to persist its checkpoint and stop."""
        self.shutdown_requested = True
        if not self.is_shutdown_complete() and self.is_flush_checkpoint_done:
            self.consume()

    def is_shutdown_complete(self) -> bool:
        return self.status is ConsumerStatus.SHUTDOWN_COMPLETE

    # Steps

    def _shutdown_task(self) -> None:
        try:
            status = self.status
            if status is ConsumerStatus.PULL_PROCESSING_DONE:
                # The pulled data was never processed: store the cursor it was read from.
                self.tracker.temp_checkpoint = self.temp_checkpoint
            elif status is ConsumerStatus.CONSUME_PROCESSING:
                self.logger.info("Consumption is in progress, waiting for consumption to be completed")
                return
            try:
                self.tracker.flush_checkpoint()
            except Exception as err:
                self.logger.warning("Flush checkpoint error, prepare for retry: %s", err)
            else:
                self.status = ConsumerStatus.SHUTDOWN_COMPLETE
                self.logger.info("shard worker %s is shut down complete", self.shard_id)
        finally:
            self._set_flush_done(True)

    def _initialize_step(self) -> None:
        try:
            try:
                cursor = self._initialize_task()
            except Exception:
                self.status = ConsumerStatus.INITIALIZING
            else:
                self.next_fetch_cursor = cursor
                self.status = ConsumerStatus.INITIALIZING_DONE
        finally:
            self._set_current_done(True)

    def _fetch_allowed(self) -> bool:
        elapsed = _now_ms() - self.last_fetch_time_ms
        if self.last_fetch_group_count < 100:
            return elapsed > 500
        if self.last_fetch_group_count < 500:
            return elapsed > 200
        if self.last_fetch_group_count < 1000:
            return elapsed > 50
        return True

    def _fetch_step(self) -> None:
        try:
            if not self._fetch_allowed():
                self.logger.debug("Pull Log Current Limitation and Re-Pull Log")
                self.status = ConsumerStatus.INITIALIZING_DONE
                return
            self.last_fetch_time_ms = _now_ms()
            # If the pulled logs are never processed, this is the cursor to store.
            self.temp_checkpoint = self.next_fetch_cursor
            try:
                group_list, next_cursor = self._fetch_task()
            except Exception:
                self.status = ConsumerStatus.INITIALIZING_DONE
                return
            self.last_fetch_log_group_list = group_list
            self.next_fetch_cursor = next_cursor
            self.tracker.set_memory_checkpoint(next_cursor)
            self.last_fetch_group_count = (
                0 if group_list is None else get_log_group_count(group_list)
            )
            self.logger.debug(
                "shard %s fetch log count %s", self.shard_id, get_log_count(group_list)
            )
            if self.last_fetch_group_count == 0:
                self.last_fetch_log_group_list = None
            else:
                self.last_fetch_time_for_force_flush = int(time.time())
            if int(time.time()) - self.last_fetch_time_for_force_flush > _FORCE_FLUSH_AFTER:
                try:
                    self.tracker.flush_checkpoint()
                except Exception as err:
                    self.logger.warning("Failed to save the final checkpoint: %s", err)
                else:
                    self.last_fetch_time_for_force_flush = 0
            self.status = ConsumerStatus.PULL_PROCESSING_DONE
        finally:
            self._set_current_done(True)

    def _process_step(self) -> None:
        try:
            rollback = self._process_task()
            if rollback:
                self.next_fetch_cursor = rollback
                self.logger.info(
                    "Checkpoints set for users have been reset, shard %s, rollback checkpoint %s",
                    self.shard_id,
                    rollback,
                )
            self.last_fetch_log_group_list = None
            self.status = ConsumerStatus.CONSUME_PROCESSING_DONE
        finally:
            self._set_current_done(True)

    # Tasks

    def _initialize_task(self) -> str:
        checkpoint = self.client.get_checkpoint(self.shard_id)
        if checkpoint:
            self.tracker.set_persistent_checkpoint(checkpoint)
            return checkpoint

        position = self.client.option.cursor_position
        if position == CursorPosition.BEGIN_CURSOR:
            start, label = "begin", "beginCursor"
        elif position == CursorPosition.END_CURSOR:
            start, label = "end", "endCursor"
        elif position == CursorPosition.SPECIAL_TIMER_CURSOR:
            start, label = str(self.client.option.cursor_start_time), "specialCursor"
        else:
            self.logger.info(
                "CursorPosition setting error, please reset with BEGIN_CURSOR or END_CURSOR "
                "or SPECIAL_TIMER_CURSOR"
            )
            raise ValueError("CursorPositionError")
        try:
            return self.client.get_cursor(self.shard_id, start)
        except Exception as err:
            self.logger.warning("get %s error, shard %s: %s", label, self.shard_id, err)
            raise

    def _fetch_task(self) -> tuple[Any, str]:
        return self.client.pull_logs(self.shard_id, self.next_fetch_cursor)

    def _run_process(self) -> None:
        self.rollback_checkpoint = self.process(self.shard_id, self.last_fetch_log_group_list) or ""
        self.tracker.flush_check()

    def _process_task(self) -> str:
        """Run the user's function, retrying every two seconds until it succeeds."""
        if self.last_fetch_log_group_list is not None:
            try:
                self._run_process()
            except Exception:
                self.logger.exception("get panic in your process function")
                while not self._retry_process_task():
                    time.sleep(2)
        return self.rollback_checkpoint

    def _retry_process_task(self) -> bool:
        self.logger.info("Start retrying the process function")
        try:
            self._run_process()
        except Exception:
            self.logger.exception("get panic in your process function")
            return False
        return True