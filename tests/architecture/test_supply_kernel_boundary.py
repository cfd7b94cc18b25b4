"""
Kernel boundary and layering contract.

1. supply_kernel/** may NOT import supply_services, supply_config or
   supply_modules.  The kernel never depends upward.

2. supply_config/** may import only supply_kernel besides itself.

3. Module services never import SQLAlchemy; persistence goes through the
   repository protocols.

4. The kernel invariants declaration is complete and non-empty.

These tests read source code via AST.
"""

import ast
import glob
from pathlib import Path

from supply_kernel.invariants import ALL_KERNEL_INVARIANTS, FORBIDDEN_KERNEL_IMPORTS, KernelInvariant

ROOT = Path(__file__).resolve().parents[2]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _python_files(package: str) -> list[Path]:
    return sorted(Path(p) for p in glob.glob(str(ROOT / package / "**" / "*.py"), recursive=True))


def _extract_imports(filepath: Path) -> list[tuple[int, str]]:
    """(line_number, module) for every import in a file."""
    tree = ast.parse(filepath.read_text(), filename=str(filepath))
    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom) and node.module:
            results.append((node.lineno, node.module))
    return results


def _violations(package: str, forbidden: tuple[str, ...]) -> list[str]:
    found = []
    for filepath in _python_files(package):
        for lineno, module in _extract_imports(filepath):
            if any(module == p or module.startswith(f"{p}.") for p in forbidden):
                found.append(f"  {filepath.relative_to(ROOT)}:{lineno} imports '{module}'")
    return found


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

class TestKernelNoUpwardDependencies:
    def test_kernel_files_found(self):
        assert _python_files("supply_kernel")

    def test_kernel_does_not_import_upper_layers(self):
        violations = _violations("supply_kernel", FORBIDDEN_KERNEL_IMPORTS)
        assert not violations, (
            "supply_kernel/** must not import upper layers:\n" + "\n".join(violations)
        )


class TestConfigLayer:
    def test_config_does_not_import_services_or_modules(self):
        violations = _violations("supply_config", ("supply_services", "supply_modules"))
        assert not violations, "\n".join(violations)


class TestModuleServices:
    def test_services_do_not_touch_sqlalchemy(self):
        violations = []
        for filepath in _python_files("supply_modules"):
            if filepath.name != "service.py":
                continue
            for lineno, module in _extract_imports(filepath):
                if module == "sqlalchemy" or module.startswith("sqlalchemy."):
                    violations.append(f"  {filepath.relative_to(ROOT)}:{lineno} imports '{module}'")
        assert not violations, "\n".join(violations)


class TestInvariantDeclaration:
    def test_invariants_declared(self):
        assert ALL_KERNEL_INVARIANTS == frozenset(KernelInvariant)
        assert KernelInvariant.STOCK_NON_NEGATIVE in ALL_KERNEL_INVARIANTS
        assert KernelInvariant.BUDGET_NOT_EXCEEDED in ALL_KERNEL_INVARIANTS
