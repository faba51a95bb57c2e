# homecare/db/rls.py
"""
Row-security session: runs every ORM read/write a caller issues through the
policies in ``homecare.core.policies``.

Reads are filtered, so rows hidden by a policy look exactly like missing
rows. Writes are checked against WITH CHECK using the values the new row
will hold, before anything reaches the table; a failing check raises
``PolicyViolation`` and leaves the session untouched.
"""
from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from sqlalchemy import Column, event, func, inspect, literal, select, text, true, update
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session
from sqlalchemy.sql import visitors
from sqlalchemy.sql.elements import ColumnElement

from homecare.core.config import settings
from homecare.core.errors import NotFound, PolicyViolation
from homecare.core.policies import check_for, policies_for, using_for

logger = logging.getLogger(__name__)

ANON = "anon"
AUTHENTICATED = "authenticated"
SERVICE_ROLE = "service_role"


@dataclass(frozen=True)
class Principal:
    """Who a query runs as: an identity (or none) plus a database role."""

    identity: Optional[uuid.UUID] = None
    role: str = ANON

    @classmethod
    def anonymous(cls) -> "Principal":
        return cls()

    @classmethod
    def authenticated(cls, identity: uuid.UUID) -> "Principal":
        return cls(identity=identity, role=AUTHENTICATED)

    @classmethod
    def service(cls) -> "Principal":
        return cls(role=SERVICE_ROLE)

    @property
    def bypass_rls(self) -> bool:
        return self.role == SERVICE_ROLE

    @property
    def grantees(self) -> Tuple[str, ...]:
        if self.role == AUTHENTICATED:
            return ("public", AUTHENTICATED)
        return ("public", )


def _is_rls_error(exc: DBAPIError) -> bool:
    return "row-level security" in str(getattr(exc, "orig", exc))


def _bind_row(clause: ColumnElement, table,
              value_of: Callable[[str], Any],
              keys: Optional[set] = None) -> ColumnElement:
    """
    Replace columns of `table` in `clause` with literals taken from
    `value_of(column_key)`; with `keys`, only those columns are replaced.
    Columns of other tables (policy subqueries) stay as they are.
    """

    def replace(elem):
        if (isinstance(elem, Column) and elem.table is table
                and (keys is None or elem.key in keys)):
            return literal(value_of(elem.key), elem.type)
        return None

    return visitors.replacement_traverse(clause, {}, replace)


class RowSecuritySession:

    def __init__(self, session: Session, principal: Principal):
        self.session = session
        self.principal = principal
        if self._forward_to_db():
            event.listen(session, "after_begin", self._set_db_role)

    # -----------------------------------------------------
    # Postgres: let the database enforce the same policies
    # -----------------------------------------------------
    def _forward_to_db(self) -> bool:
        bind = self.session.get_bind()
        return (settings.DB_ENFORCE_RLS
                and bind.dialect.name == "postgresql"
                and not self.principal.bypass_rls)

    def _set_db_role(self, _session, _trans, connection) -> None:
        sub = str(self.principal.identity) if self.principal.identity else ""
        connection.execute(
            text("SELECT set_config('request.jwt.claim.sub', :sub, true)"),
            {"sub": sub})
        connection.execute(text(f"SET LOCAL ROLE {self.principal.role}"))

    @contextmanager
    def elevated(self) -> Iterator["RowSecuritySession"]:
        """
        Run a block as the service role on the same transaction, for
        privileged steps such as reserving a slot on a patient's behalf.
        """
        forwarded = self._forward_to_db()
        if forwarded:
            self.session.execute(text("RESET ROLE"))
        try:
            yield RowSecuritySession(self.session, Principal.service())
        finally:
            if forwarded and self.session.in_transaction():
                self.session.execute(
                    text(f"SET LOCAL ROLE {self.principal.role}"))

    # -----------------------------------------------------
    # predicates
    # -----------------------------------------------------
    @property
    def uid(self) -> Optional[uuid.UUID]:
        return self.principal.identity

    def visible(self, model, command: str = "SELECT") -> ColumnElement:
        if self.principal.bypass_rls:
            return true()
        return using_for(model.__tablename__, command,
                         self.principal.grantees, self.uid)

    def _check(self, model, command: str) -> ColumnElement:
        if self.principal.bypass_rls:
            return true()
        return check_for(model.__tablename__, command,
                         self.principal.grantees, self.uid)

    def _permits(self, model, command: str,
                 value_of: Callable[[str], Any]) -> bool:
        if self.principal.bypass_rls:
            return True
        if not policies_for(model.__tablename__, command,
                            self.principal.grantees):
            return False
        clause = _bind_row(self._check(model, command), model.__table__,
                           value_of)
        return self.session.execute(
            select(literal(1)).where(clause)).first() is not None

    # -----------------------------------------------------
    # reads
    # -----------------------------------------------------
    def query(self, model, *criteria):
        return select(model).where(self.visible(model), *criteria)

    def all(self, model, *criteria, order_by=None) -> List[Any]:
        stmt = self.query(model, *criteria)
        if order_by is not None:
            if not isinstance(order_by, (list, tuple)):
                order_by = (order_by, )
            stmt = stmt.order_by(*order_by)
        return list(self.session.execute(stmt).scalars().all())

    def first(self, model, *criteria) -> Optional[Any]:
        return self.session.execute(self.query(
            model, *criteria).limit(1)).scalars().first()

    def get(self, model, pk: Any) -> Optional[Any]:
        return self.first(model, _pk_col(model) == pk)

    def get_or_404(self, model, pk: Any, what: str = None) -> Any:
        row = self.get(model, pk)
        if row is None:
            raise NotFound(f"{what or model.__name__} not found")
        return row

    def count(self, model, *criteria) -> int:
        stmt = (select(func.count()).select_from(model).where(
            self.visible(model), *criteria))
        return int(self.session.execute(stmt).scalar_one())

    # -----------------------------------------------------
    # writes
    # -----------------------------------------------------
    def insert(self, obj: Any) -> Any:
        model = type(obj)
        table = model.__tablename__
        if not self._permits(model, "INSERT", lambda k: getattr(obj, k)):
            logger.info("INSERT on %s rejected by policy for %s", table,
                        self.uid)
            raise PolicyViolation(table, "INSERT")

        try:
            with self.session.begin_nested():
                self.session.add(obj)
                self.session.flush()
        except DBAPIError as e:
            if _is_rls_error(e):
                raise PolicyViolation(table, "INSERT") from e
            raise
        return obj

    def update(self, model, pk: Any, values: Dict[str, Any]) -> Any:
        table = model.__tablename__
        obj = self.session.execute(
            select(model).where(
                _pk_col(model) == pk,
                self.visible(model, "UPDATE"),
            )).scalars().first()
        if obj is None:
            raise NotFound(f"{model.__name__} not found")

        def new_value(k):
            return values[k] if k in values else getattr(obj, k)

        if not self._permits(model, "UPDATE", new_value):
            logger.info("UPDATE on %s rejected by policy for %s", table,
                        self.uid)
            raise PolicyViolation(table, "UPDATE")

        try:
            with self.session.begin_nested():
                for k, v in values.items():
                    setattr(obj, k, v)
                self.session.flush()
        except DBAPIError as e:
            if _is_rls_error(e):
                raise PolicyViolation(table, "UPDATE") from e
            raise
        return obj

    def update_where(self, model, values: Dict[str, Any], *criteria) -> int:
        """
        Conditional bulk UPDATE; returns the number of rows changed. With
        criteria on the current value this is a compare-and-swap. Rows whose
        new version would fail WITH CHECK are left alone.
        """
        stmt = (update(model)
                .where(self.visible(model, "UPDATE"), *criteria)
                .values(**values)
                .execution_options(synchronize_session=False))
        if not self.principal.bypass_rls:
            stmt = stmt.where(
                _bind_row(self._check(model, "UPDATE"), model.__table__,
                          values.__getitem__, keys=set(values)))
        return self.session.execute(stmt).rowcount

    def delete(self, model, pk: Any) -> None:
        obj = self.session.execute(
            select(model).where(_pk_col(model) == pk,
                                self.visible(model,
                                             "DELETE"))).scalars().first()
        if obj is None:
            raise NotFound(f"{model.__name__} not found")
        self.session.delete(obj)
        self.session.flush()


def _pk_col(model):
    return inspect(model).primary_key[0]
