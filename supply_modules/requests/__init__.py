"""
Requests Module (``supply_modules.requests``).

Internal requests from units to distribution centers: approval, sending
through the in-transit location, delivery and budget consumption on
receipt.
"""

from supply_modules.requests.models import (
    InTransitRecord,
    InTransitStatus,
    NewRequestLine,
    Request,
    RequestLine,
    RequestPriority,
    RequestStatus,
    SendOutcome,
    SendResolution,
    SendResult,
)
from supply_modules.requests.workflows import REQUEST_WORKFLOW

__all__ = [
    "InTransitRecord",
    "InTransitStatus",
    "NewRequestLine",
    "Request",
    "RequestLine",
    "RequestPriority",
    "RequestStatus",
    "SendOutcome",
    "SendResolution",
    "SendResult",
    "REQUEST_WORKFLOW",
]
