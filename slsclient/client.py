"""The client that gathers every service API behind one transport."""

from __future__ import annotations

from slsclient.etl_job import EtlJobApi
from slsclient.resources import ResourceApi
from slsclient.scheduled_sql import ScheduledSQLApi
from slsclient.store import StoreApi
from slsclient.tags import TagApi
from slsclient.transport import Transport


class Client(EtlJobApi, ResourceApi, TagApi, StoreApi, ScheduledSQLApi):
    """ETL jobs, resources, tags, logstore shards and sub stores, and scheduled SQL."""

    def __init__(self, transport: Transport):
        super().__init__(transport)