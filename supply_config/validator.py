"""
Configuration Validator (``supply_config.validator``).

Responsibility
--------------
Checks a parsed ``SupplyConfig`` before it is handed to any service.

Invariants enforced
-------------------
* Every granted capability is in ``CAPABILITY_TAXONOMY`` (or the wildcard).
* ``income_period_days`` is positive.
* ``default_send_resolution`` is a known resolution.
* At least one role is declared.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from supply_config.schema import (
    CAPABILITY_TAXONOMY,
    SEND_RESOLUTIONS,
    WILDCARD_CAPABILITY,
    SupplyConfig,
)


@dataclass
class ConfigValidationResult:
    """``is_valid`` is True only when ``errors`` is empty."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def validate_configuration(config: SupplyConfig) -> ConfigValidationResult:
    result = ConfigValidationResult()

    if config.budget_policy.income_period_days <= 0:
        result.errors.append(
            f"budget_policy.income_period_days must be positive, "
            f"got {config.budget_policy.income_period_days}"
        )

    if config.request_policy.default_send_resolution not in SEND_RESOLUTIONS:
        result.errors.append(
            f"request_policy.default_send_resolution "
            f"'{config.request_policy.default_send_resolution}' is not one of "
            f"{sorted(SEND_RESOLUTIONS)}"
        )

    if not config.rbac.roles:
        result.errors.append("rbac.roles declares no role")

    for grant in config.rbac.roles:
        unknown = grant.capabilities - CAPABILITY_TAXONOMY - {WILDCARD_CAPABILITY}
        for capability in sorted(unknown):
            result.errors.append(
                f"rbac.roles.{grant.role}: unknown capability '{capability}'"
            )
        if not grant.capabilities:
            result.warnings.append(f"rbac.roles.{grant.role} grants no capability")

    return result
