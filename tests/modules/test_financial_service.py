"""
Tests for the Financial module service.
"""

from datetime import date
from decimal import Decimal

import pytest

from supply_kernel.domain.dtos import AuditAction
from supply_kernel.exceptions import BudgetOverlapError, PermissionDeniedError


class TestBudgetAdministration:
    def test_create_budget_writes_audit(self, repo, financial_service, finance_officer, world):
        budget = financial_service.create_budget(
            world.satellite.id, date(2024, 1, 1), date(2024, 6, 30), Decimal("800"), finance_officer,
        )

        [event] = repo.list_audit_events("budget", budget.id)
        assert event.action is AuditAction.BUDGET_CREATED
        assert [b.id for b in financial_service.list_budgets(world.satellite.id, finance_officer)] == [budget.id]

    def test_overlap_rejected(self, financial_service, finance_officer, world):
        financial_service.create_budget(
            world.satellite.id, date(2024, 1, 1), date(2024, 6, 30), Decimal("800"), finance_officer,
        )
        with pytest.raises(BudgetOverlapError):
            financial_service.create_budget(
                world.satellite.id, date(2024, 6, 1), date(2024, 12, 31), Decimal("1"), finance_officer,
            )

    def test_scoped_officer_cannot_manage_other_unit(self, financial_service, finance_officer, world):
        with pytest.raises(PermissionDeniedError):
            financial_service.create_budget(
                world.other_satellite.id, date(2024, 1, 1), date(2024, 6, 30), Decimal("1"), finance_officer,
            )

    def test_storekeeper_cannot_view_finances(self, financial_service, storekeeper, world):
        with pytest.raises(PermissionDeniedError):
            financial_service.list_transactions(world.satellite.id, storekeeper)

    def test_record_income_writes_audit(self, repo, financial_service, finance_officer, world):
        budget = financial_service.record_income(
            world.satellite.id, Decimal("250"), "Municipal transfer", finance_officer,
        )

        assert budget.budget_amount == Decimal("250")
        actions = [e.action for e in repo.list_audit_events("budget", budget.id)]
        assert actions == [AuditAction.INCOME_RECORDED]


class TestExpenseReport:
    def test_report_nets_releases_against_expenses(
        self, financial_service, budget_ledger, finance_officer, open_budget, world,
    ):
        open_budget(world.satellite.id, Decimal("1000"))
        budget_ledger.debit(world.satellite.id, date(2024, 1, 1), Decimal("300"))
        budget_ledger.credit(world.satellite.id, date(2024, 1, 1), Decimal("100"))
        budget_ledger.record_income(world.satellite.id, Decimal("50"), "Donation")

        report = financial_service.unit_expense_report(
            world.satellite.id, date(2024, 1, 1), date(2024, 1, 31), finance_officer,
        )

        assert report.expenses == Decimal("300")
        assert report.releases == Decimal("100")
        assert report.income == Decimal("50")
        assert report.net_expense == Decimal("200")
        assert report.transaction_count == 3

    def test_report_excludes_out_of_range(
        self, financial_service, budget_ledger, finance_officer, open_budget, world, deterministic_clock,
    ):
        open_budget(world.satellite.id, Decimal("1000"))
        budget_ledger.debit(world.satellite.id, date(2024, 1, 1), Decimal("300"))
        deterministic_clock.advance_days(40)
        budget_ledger.debit(world.satellite.id, date(2024, 2, 10), Decimal("25"))

        report = financial_service.unit_expense_report(
            world.satellite.id, date(2024, 2, 1), date(2024, 2, 28), finance_officer,
        )

        assert report.expenses == Decimal("25")
        assert report.transaction_count == 1

    def test_inverted_range_rejected(self, financial_service, finance_officer, world):
        with pytest.raises(ValueError):
            financial_service.unit_expense_report(
                world.satellite.id, date(2024, 2, 1), date(2024, 1, 1), finance_officer,
            )

    def test_report_logged(self, financial_service, finance_officer, world, captured_logs):
        financial_service.unit_expense_report(
            world.satellite.id, date(2024, 1, 1), date(2024, 1, 31), finance_officer,
        )
        assert any(r["message"] == "unit_expense_report_built" for r in captured_logs())
