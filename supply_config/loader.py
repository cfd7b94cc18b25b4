"""
Configuration Loader (``supply_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into the frozen dataclasses of
``supply_config.schema``.  No service calls this directly; the single
runtime entry point is ``supply_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from supply_config.schema import (
    BudgetPolicy,
    DatabaseConfig,
    RbacConfig,
    RequestPolicy,
    RoleGrant,
    SupplyConfig,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file and return its contents as a dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of the parsed document."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    return DatabaseConfig(
        url=str(data.get("url", DatabaseConfig.url)),
        echo=bool(data.get("echo", False)),
    )


def parse_budget_policy(data: dict[str, Any]) -> BudgetPolicy:
    return BudgetPolicy(
        income_period_days=int(data.get("income_period_days", BudgetPolicy.income_period_days)),
    )


def parse_request_policy(data: dict[str, Any]) -> RequestPolicy:
    return RequestPolicy(
        default_send_resolution=str(
            data.get("default_send_resolution", RequestPolicy.default_send_resolution)
        ),
        corrective_purchase_notes=str(
            data.get("corrective_purchase_notes", RequestPolicy.corrective_purchase_notes)
        ),
    )


def parse_rbac(data: dict[str, Any]) -> RbacConfig:
    roles = data.get("roles") or {}
    grants = tuple(
        RoleGrant(
            role=str(name),
            capabilities=frozenset(str(c) for c in (spec or {}).get("capabilities", ())),
            all_units=bool((spec or {}).get("all_units", False)),
        )
        for name, spec in roles.items()
    )
    return RbacConfig(roles=grants)


def parse_config(data: dict[str, Any]) -> SupplyConfig:
    """Parse a loaded YAML document into a SupplyConfig (unvalidated)."""
    return SupplyConfig(
        config_id=str(data["config_id"]),
        version=int(data["version"]),
        database=parse_database(data.get("database") or {}),
        budget_policy=parse_budget_policy(data.get("budget_policy") or {}),
        request_policy=parse_request_policy(data.get("request_policy") or {}),
        rbac=parse_rbac(data.get("rbac") or {}),
        checksum=compute_checksum(data),
    )


def load_config_file(path: Path) -> SupplyConfig:
    return parse_config(load_yaml_file(path))
