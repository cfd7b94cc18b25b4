"""
Module ORM Registry (``supply_modules._orm_registry``).

Responsibility
--------------
Ensure every SQLAlchemy ORM model is imported so that ``Base.metadata``
contains its table before tables are created.  ``create_all_tables()`` is
the one entry point scripts and test fixtures use to build a schema.

Architecture position
---------------------
**Modules layer** -- utility.  MUST NOT be imported by ``supply_kernel``.
"""

from sqlalchemy.engine import Engine


def import_all_orm_models() -> None:
    """Import kernel models and every ``supply_modules.*.orm`` module.

    Idempotent: repeated calls are harmless.
    """
    # Kernel tables first (units, items, budgets, stock)
    import supply_kernel.models  # noqa: F401
    # fmt: off
    import supply_modules.inventory.orm  # noqa: F401
    import supply_modules.purchasing.orm  # noqa: F401
    import supply_modules.requests.orm  # noqa: F401
    import supply_modules.quotation.orm  # noqa: F401
    # fmt: on


def create_all_tables(engine: Engine | None = None) -> None:
    """Register every ORM model, then create all tables."""
    from supply_kernel.db.engine import create_tables

    import_all_orm_models()
    create_tables(engine)
