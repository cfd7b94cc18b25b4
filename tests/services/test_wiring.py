"""
Tests for building the module services from a configuration set.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from supply_config.loader import parse_config
from supply_config.schema import BudgetPolicy
from supply_modules.financial.service import FinancialService
from supply_services.wiring import build_services


@pytest.fixture
def short_period_config():
    return parse_config({
        "config_id": "wiring-test",
        "version": 1,
        "budget_policy": {"income_period_days": 30},
        "request_policy": {"default_send_resolution": "create_purchase"},
        "rbac": {"roles": {"admin": {"all_units": True, "capabilities": ["*"]}}},
    })


class TestBuildServices:
    def test_income_period_comes_from_config(
        self, repo, world, finance_officer, deterministic_clock, short_period_config,
    ):
        services = build_services(repo, short_period_config, clock=deterministic_clock)

        budget = services.financial.record_income(
            world.satellite.id, Decimal("250"), "Grant", finance_officer, on=date(2024, 5, 1),
        )

        assert budget.period_start == date(2024, 5, 1)
        assert budget.period_end == date(2024, 5, 31)

    def test_services_share_one_set_of_ledgers(self, repo, deterministic_clock, short_period_config):
        services = build_services(repo, short_period_config, clock=deterministic_clock)

        assert services.requests._budget is services.budget_ledger
        assert services.purchases._budget is services.budget_ledger
        assert services.requests._purchases is services.purchases
        assert services.inventory._transfers is services.transfers
        assert services.stock._transfers is services.transfers
        assert services.requests._policy.default_send_resolution == "create_purchase"

    def test_build_is_logged(self, repo, deterministic_clock, short_period_config, captured_logs):
        build_services(repo, short_period_config, clock=deterministic_clock)

        [record] = [r for r in captured_logs() if r["message"] == "services_built"]
        assert record["config_id"] == "wiring-test"
        assert record["income_period_days"] == 30


class TestFinancialServicePolicy:
    @pytest.mark.parametrize("days", [30, 90, 365])
    def test_policy_sets_length_of_budget_opened_by_income(
        self, repo, world, finance_officer, deterministic_clock, days,
    ):
        service = FinancialService(
            repo, clock=deterministic_clock, policy=BudgetPolicy(income_period_days=days),
        )

        budget = service.record_income(
            world.satellite.id, Decimal("100"), "Donation", finance_officer, on=date(2024, 2, 1),
        )

        assert budget.period_end == date(2024, 2, 1) + timedelta(days=days)
