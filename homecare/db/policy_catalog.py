# homecare/db/policy_catalog.py
"""
Where applied policies live. PostgreSQL has a real catalog (pg_policy);
other dialects get two bookkeeping tables so the schema manager can diff and
drop them the same way.
"""
from __future__ import annotations

import hashlib
from typing import Dict, Set, Tuple

from sqlalchemy import Column, MetaData, String, Table, delete, insert, select
from sqlalchemy.engine import Connection

from homecare.core.policies import (
    Policy,
    render_create_policy,
    render_drop_policy,
)

PolicyKey = Tuple[str, str]  # (table, policy name)


def fingerprint(policy: Policy) -> str:
    return hashlib.sha1(
        render_create_policy(policy).encode("utf-8")).hexdigest()[:16]


class PgPolicyCatalog:
    """Policies in pg_policy; the fingerprint is kept as the policy comment."""

    def policies(self, conn: Connection) -> Dict[PolicyKey, str]:
        rows = conn.exec_driver_sql("""
            SELECT c.relname, pol.polname,
                   coalesce(obj_description(pol.oid, 'pg_policy'), '')
            FROM pg_policy pol
            JOIN pg_class c ON c.oid = pol.polrelid
            JOIN pg_namespace n ON n.oid = c.relnamespace
            WHERE n.nspname = current_schema()
        """).fetchall()
        return {(r[0], r[1]): r[2] for r in rows}

    def rls_tables(self, conn: Connection) -> Set[str]:
        rows = conn.exec_driver_sql("""
            SELECT c.relname
            FROM pg_class c
            JOIN pg_namespace n ON n.oid = c.relnamespace
            WHERE n.nspname = current_schema()
              AND c.relkind = 'r' AND c.relrowsecurity
        """).fetchall()
        return {r[0] for r in rows}

    def drop(self, conn: Connection, table: str, name: str) -> None:
        conn.exec_driver_sql(render_drop_policy(name, table))

    def create(self, conn: Connection, policy: Policy) -> None:
        conn.exec_driver_sql(render_create_policy(policy))
        prep = conn.dialect.identifier_preparer
        conn.exec_driver_sql(
            f"COMMENT ON POLICY {prep.quote_identifier(policy.name)} "
            f"ON {prep.quote(policy.table)} IS '{fingerprint(policy)}'")

    def enable(self, conn: Connection, table: str) -> None:
        prep = conn.dialect.identifier_preparer
        conn.exec_driver_sql(
            f"ALTER TABLE {prep.quote(table)} ENABLE ROW LEVEL SECURITY")

    def forget_table(self, conn: Connection, table: str) -> None:
        # DROP TABLE takes its policies with it
        pass

    def ensure(self, conn: Connection) -> None:
        pass


catalog_metadata = MetaData()

rls_tables = Table(
    "rls_tables",
    catalog_metadata,
    Column("table_name", String(64), primary_key=True),
)

rls_policies = Table(
    "rls_policies",
    catalog_metadata,
    Column("table_name", String(64), primary_key=True),
    Column("policy_name", String(191), primary_key=True),
    Column("command", String(8), nullable=False),
    Column("fingerprint", String(16), nullable=False),
)

CATALOG_TABLES = {t.name for t in catalog_metadata.sorted_tables}


class TablePolicyCatalog:
    """
    Bookkeeping for dialects without row-level security. Enforcement there
    is entirely the row-security session's job.
    """

    def ensure(self, conn: Connection) -> None:
        catalog_metadata.create_all(conn, checkfirst=True)

    def policies(self, conn: Connection) -> Dict[PolicyKey, str]:
        self.ensure(conn)
        rows = conn.execute(
            select(rls_policies.c.table_name, rls_policies.c.policy_name,
                   rls_policies.c.fingerprint)).fetchall()
        return {(r[0], r[1]): r[2] for r in rows}

    def rls_tables(self, conn: Connection) -> Set[str]:
        self.ensure(conn)
        return set(conn.execute(select(rls_tables.c.table_name)).scalars())

    def drop(self, conn: Connection, table: str, name: str) -> None:
        conn.execute(
            delete(rls_policies).where(rls_policies.c.table_name == table,
                                       rls_policies.c.policy_name == name))

    def create(self, conn: Connection, policy: Policy) -> None:
        conn.execute(
            insert(rls_policies).values(table_name=policy.table,
                                        policy_name=policy.name,
                                        command=policy.command,
                                        fingerprint=fingerprint(policy)))

    def enable(self, conn: Connection, table: str) -> None:
        conn.execute(delete(rls_tables).where(rls_tables.c.table_name == table))
        conn.execute(insert(rls_tables).values(table_name=table))

    def forget_table(self, conn: Connection, table: str) -> None:
        conn.execute(
            delete(rls_policies).where(rls_policies.c.table_name == table))
        conn.execute(delete(rls_tables).where(rls_tables.c.table_name == table))


def catalog_for(conn: Connection):
    if conn.dialect.name == "postgresql":
        return PgPolicyCatalog()
    return TablePolicyCatalog()
