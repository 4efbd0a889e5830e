from __future__ import annotations

from rt_rest_client.adapters.rt.client import AsyncRTClient, TicketStats
from rt_rest_client.adapters.rt.pagination import aggregate
from rt_rest_client.adapters.rt.transport import RawResponse, execute

__all__ = [
    "AsyncRTClient",
    "RawResponse",
    "TicketStats",
    "aggregate",
    "execute",
]
