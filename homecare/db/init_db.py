# homecare/db/init_db.py
from __future__ import annotations

import argparse
import logging

from sqlalchemy.exc import SQLAlchemyError

from homecare.core.logging import configure_logging
from homecare.db.schema_manager import SchemaManager
from homecare.db.session import engine

logger = logging.getLogger(__name__)


def run(fresh: bool = False, seed: bool = True, dry_run: bool = False) -> None:
    manager = SchemaManager()

    if dry_run:
        with engine.connect() as conn:
            changes = manager.plan(conn, reset=fresh)
        for ch in changes:
            print(ch)
        print(f"{len(changes)} change(s) pending")
        return

    if fresh:
        logger.warning("Dropping policies and tables before rebuild (reset)")
    try:
        manager.apply(engine, reset=fresh, seed=seed)
    except SQLAlchemyError:
        logger.exception("Schema apply failed; nothing was changed")
        raise

    with engine.connect() as conn:
        state = manager.describe(conn)
    logger.info("Tables: %s", ", ".join(state.tables))
    logger.info("Policies: %d on %d secured table(s)", len(state.policies),
                len(state.rls_tables))


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Bring the database to the desired schema and policies.")
    parser.add_argument(
        "--fresh",
        action="store_true",
        help="Drop policies and tables, then rebuild (DEV ONLY).",
    )
    parser.add_argument("--no-seed",
                        action="store_true",
                        help="Skip the demo patient/nurse rows.")
    parser.add_argument("--plan",
                        action="store_true",
                        help="Print the pending changes without applying.")
    args = parser.parse_args()
    configure_logging()
    run(fresh=args.fresh, seed=not args.no_seed, dry_run=args.plan)


if __name__ == "__main__":
    main()
