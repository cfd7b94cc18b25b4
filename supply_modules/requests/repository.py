"""Persistence contract of the Requests module."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from supply_kernel.domain.repository import LedgerRepository
from supply_modules.requests.models import InTransitRecord, Request, RequestLine


class RequestsRepository(LedgerRepository, Protocol):
    def add_request(self, request: Request) -> Request: ...
    def get_request(self, request_id: UUID) -> Request | None: ...

    def save_request(self, request: Request) -> Request:
        """Persist ``request`` if the stored version equals ``request.version``.

        Returns the stored DTO with ``version + 1``; raises
        OptimisticLockError otherwise.
        """
        ...

    def list_requests(self, unit_id: UUID | None = None) -> list[Request]: ...
    def add_request_line(self, line: RequestLine) -> RequestLine: ...
    def save_request_line(self, line: RequestLine) -> RequestLine: ...
    def list_request_lines(self, request_id: UUID) -> list[RequestLine]: ...
    def add_in_transit(self, record: InTransitRecord) -> InTransitRecord: ...
    def get_in_transit(self, record_id: UUID) -> InTransitRecord | None: ...
    def list_in_transit(self, request_id: UUID | None = None) -> list[InTransitRecord]: ...

    def mark_in_transit_delivered(self, record_id: UUID, delivered_at: datetime) -> bool:
        """Conditional write: flip ``in_transit`` to ``delivered``.

        Returns False, mutating nothing, when the record is already delivered.
        """
        ...
