# homecare/db/schema_manager.py
"""
Desired-state schema manager.

The desired state is the model metadata plus the policy registry. ``plan``
diffs it against the live catalog and ``apply`` executes the resulting steps
in a single transaction, so a failure part-way leaves the schema untouched.

``reset=True`` rebuilds from scratch: drop every policy found in the catalog,
drop owned tables (CASCADE, reverse dependency order), recreate, secure and
seed. Without reset only missing or drifted pieces are touched, and applying
twice in a row is a no-op.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Tuple

from sqlalchemy import inspect
from sqlalchemy.engine import Connection, Engine

from homecare.core.config import settings
from homecare.core.policies import POLICIES, SECURED_TABLES, Policy, policy_index
from homecare.db.base import Base
from homecare.db.policy_catalog import CATALOG_TABLES, catalog_for, fingerprint

import homecare.models  # noqa: F401  (registers every table on Base.metadata)

logger = logging.getLogger(__name__)

# owned by the identity provider; never dropped by a reset
PRESERVED_TABLES = frozenset({"identities"})

AUTH_OBJECTS_SQL = [
    """
    DO $$
    BEGIN
      IF NOT EXISTS (SELECT 1 FROM pg_roles WHERE rolname = 'anon') THEN
        CREATE ROLE anon NOLOGIN;
      END IF;
      IF NOT EXISTS (SELECT 1 FROM pg_roles WHERE rolname = 'authenticated') THEN
        CREATE ROLE authenticated NOLOGIN;
      END IF;
      IF NOT EXISTS (SELECT 1 FROM pg_roles WHERE rolname = 'service_role') THEN
        CREATE ROLE service_role NOLOGIN BYPASSRLS;
      END IF;
    END $$
    """,
    "CREATE SCHEMA IF NOT EXISTS auth",
    """
    CREATE OR REPLACE FUNCTION auth.uid() RETURNS uuid
      LANGUAGE sql STABLE
      AS $$ SELECT nullif(current_setting('request.jwt.claim.sub', true), '')::uuid $$
    """,
    "GRANT USAGE ON SCHEMA auth TO anon, authenticated",
]


@dataclass(frozen=True)
class SchemaChange:
    kind: str  # ensure_auth | drop_policy | drop_table | create_table | grant | enable_rls | create_policy
    table: Optional[str] = None
    policy: Optional[str] = None

    def __str__(self) -> str:
        if self.policy:
            return f"{self.kind} {self.table}.{self.policy!r}"
        return f"{self.kind} {self.table or ''}".strip()


@dataclass
class SchemaState:
    """Comparable snapshot of the owned schema as the catalog reports it."""

    tables: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    constraints: Dict[str, FrozenSet[str]] = field(default_factory=dict)
    rls_tables: FrozenSet[str] = frozenset()
    policies: Dict[Tuple[str, str], str] = field(default_factory=dict)


class SchemaManager:

    def __init__(self, metadata=None, policies: Optional[List[Policy]] = None):
        self.metadata = metadata if metadata is not None else Base.metadata
        self.policies = list(POLICIES if policies is None else policies)
        self._by_key = policy_index(self.policies)

    # -----------------------------------------------------
    # desired state
    # -----------------------------------------------------
    def _tables(self):
        return [t for t in self.metadata.sorted_tables]

    def _secured(self) -> List[str]:
        names = {t.name for t in self._tables()}
        return [t for t in SECURED_TABLES if t in names]

    def _desired_policies(self) -> Dict[Tuple[str, str], str]:
        return {k: fingerprint(p) for k, p in self._by_key.items()}

    # -----------------------------------------------------
    # plan
    # -----------------------------------------------------
    def plan(self, conn: Connection, reset: bool = False) -> List[SchemaChange]:
        catalog = catalog_for(conn)
        existing_tables = set(inspect(conn).get_table_names())
        existing_policies = catalog.policies(conn)
        desired = self._desired_policies()
        changes: List[SchemaChange] = []

        pg = conn.dialect.name == "postgresql"
        if pg and settings.MANAGE_AUTH_OBJECTS:
            changes.append(SchemaChange("ensure_auth"))

        if reset:
            for table, name in sorted(existing_policies):
                changes.append(SchemaChange("drop_policy", table, name))
            for t in reversed(self._tables()):
                if t.name in existing_tables and t.name not in PRESERVED_TABLES:
                    changes.append(SchemaChange("drop_table", t.name))
            for t in self._tables():
                if t.name not in existing_tables or t.name not in PRESERVED_TABLES:
                    changes.append(SchemaChange("create_table", t.name))
            if pg and settings.MANAGE_AUTH_OBJECTS:
                changes.append(SchemaChange("grant"))
            for name in self._secured():
                changes.append(SchemaChange("enable_rls", name))
            for table, name in self._by_key:
                changes.append(SchemaChange("create_policy", table, name))
            return changes

        # sync: stale or drifted policies out first
        for key in sorted(existing_policies):
            if desired.get(key) != existing_policies[key]:
                changes.append(SchemaChange("drop_policy", *key))

        created = []
        for t in self._tables():
            if t.name not in existing_tables:
                changes.append(SchemaChange("create_table", t.name))
                created.append(t.name)
        if pg and settings.MANAGE_AUTH_OBJECTS and created:
            changes.append(SchemaChange("grant"))

        secured = catalog.rls_tables(conn)
        for name in self._secured():
            if name in created or name not in secured:
                changes.append(SchemaChange("enable_rls", name))

        for key, fp in desired.items():
            if existing_policies.get(key) != fp:
                changes.append(SchemaChange("create_policy", *key))
        return changes

    # -----------------------------------------------------
    # apply
    # -----------------------------------------------------
    def apply(self,
              engine: Engine,
              reset: bool = False,
              seed: bool = True) -> List[SchemaChange]:
        """Plan and execute in one transaction; all-or-nothing."""
        with engine.begin() as conn:
            catalog_for(conn).ensure(conn)
            changes = self.plan(conn, reset=reset)
            for ch in changes:
                logger.info("schema: %s", ch)
                self._execute(conn, ch)
            if seed:
                from homecare.db.seed import seed_demo
                seed_demo(conn)
        logger.info("schema: %d change(s) applied%s", len(changes),
                    " (reset)" if reset else "")
        return changes

    def _execute(self, conn: Connection, ch: SchemaChange) -> None:
        catalog = catalog_for(conn)
        pg = conn.dialect.name == "postgresql"
        tables = self.metadata.tables

        if ch.kind == "ensure_auth":
            for sql in AUTH_OBJECTS_SQL:
                conn.exec_driver_sql(sql)
        elif ch.kind == "drop_policy":
            catalog.drop(conn, ch.table, ch.policy)
        elif ch.kind == "drop_table":
            if pg:
                prep = conn.dialect.identifier_preparer
                conn.exec_driver_sql(
                    f"DROP TABLE IF EXISTS {prep.quote(ch.table)} CASCADE")
            else:
                tables[ch.table].drop(conn, checkfirst=True)
            catalog.forget_table(conn, ch.table)
        elif ch.kind == "create_table":
            tables[ch.table].create(conn, checkfirst=True)
        elif ch.kind == "grant":
            prep = conn.dialect.identifier_preparer
            for name in self._secured():
                q = prep.quote(name)
                conn.exec_driver_sql(
                    f"GRANT SELECT, INSERT, UPDATE, DELETE ON {q} TO authenticated, service_role")
                conn.exec_driver_sql(f"GRANT SELECT ON {q} TO anon")
        elif ch.kind == "enable_rls":
            catalog.enable(conn, ch.table)
        elif ch.kind == "create_policy":
            catalog.create(conn, self._by_key[(ch.table, ch.policy)])
        else:
            raise ValueError(f"Unknown schema change: {ch.kind!r}")

    # -----------------------------------------------------
    # snapshot
    # -----------------------------------------------------
    def describe(self, conn: Connection) -> SchemaState:
        insp = inspect(conn)
        owned = {t.name for t in self._tables()}
        state = SchemaState()
        for name in sorted(insp.get_table_names()):
            if name in CATALOG_TABLES or name not in owned:
                continue
            state.tables[name] = tuple(c["name"] for c in insp.get_columns(name))
            names = set()
            for getter in (insp.get_unique_constraints,
                           insp.get_check_constraints,
                           insp.get_foreign_keys, insp.get_indexes):
                names.update(c.get("name") or "" for c in getter(name))
            state.constraints[name] = frozenset(names)
        catalog = catalog_for(conn)
        state.rls_tables = frozenset(catalog.rls_tables(conn) & owned)
        state.policies = catalog.policies(conn)
        return state
