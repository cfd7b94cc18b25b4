"""
supply_services.bootstrap -- open a SQL repository from configuration.

Responsibility:
    Reads ``database.url`` from the active ``SupplyConfig``, initializes the
    process-wide engine and returns a ``SqlAlchemyRepository`` over its
    session factory.  Scripts call this instead of wiring SQLAlchemy
    themselves.

Failure modes:
    - Driver or connection errors from SQLAlchemy propagate unchanged.
"""

from __future__ import annotations

from supply_config import SupplyConfig
from supply_kernel.db.engine import (
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    is_postgres,
)
from supply_kernel.logging_config import get_logger
from supply_modules._orm_registry import create_all_tables, import_all_orm_models
from supply_services.sql_repository import SqlAlchemyRepository

logger = get_logger("services.bootstrap")


def open_sql_repository(
    config: SupplyConfig,
    *,
    create_schema: bool = True,
    reset: bool = False,
) -> SqlAlchemyRepository:
    """Initialize the engine for ``config.database`` and return a repository.

    Args:
        config: Active configuration set.
        create_schema: Create any missing table.
        reset: Drop every table first.  Destroys data.
    """
    engine = init_engine_from_url(config.database.url, echo=config.database.echo)

    if reset:
        import_all_orm_models()
        drop_tables(engine)
        logger.warning("schema_dropped", extra={"dialect": engine.dialect.name})
    if create_schema or reset:
        create_all_tables(engine)

    logger.info(
        "sql_repository_opened",
        extra={
            "config_id": config.config_id,
            "dialect": engine.dialect.name,
            "postgres": is_postgres(),
            "schema_created": create_schema or reset,
        },
    )
    return SqlAlchemyRepository(get_session_factory())
