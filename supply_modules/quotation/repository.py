"""Persistence contract of the Quotation module."""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from supply_kernel.domain.repository import LedgerRepository
from supply_modules.quotation.models import PriceHistory, Quotation, QuotationResponse


class QuotationRepository(LedgerRepository, Protocol):
    def add_quotation(self, quotation: Quotation) -> Quotation: ...
    def get_quotation(self, quotation_id: UUID) -> Quotation | None: ...
    def save_quotation(self, quotation: Quotation) -> Quotation: ...
    def list_quotations(self, purchase_id: UUID | None = None) -> list[Quotation]: ...
    def add_response(self, response: QuotationResponse) -> QuotationResponse: ...
    def get_response(self, response_id: UUID) -> QuotationResponse | None: ...

    def list_responses(
        self, quotation_id: UUID, item_id: UUID | None = None,
    ) -> list[QuotationResponse]: ...

    def clear_selection(self, quotation_id: UUID, item_id: UUID) -> int:
        """Unselect every response of the (quotation, item) pair; return how many were selected."""
        ...

    def set_response_selected(self, response_id: UUID, selected: bool) -> QuotationResponse:
        """Flag or unflag one response.

        Raises DuplicateSelectionError when another response of the same
        (quotation, item) pair is already selected.
        """
        ...

    def add_price_history(self, entry: PriceHistory) -> PriceHistory: ...
    def list_price_history(self, item_id: UUID) -> list[PriceHistory]: ...
