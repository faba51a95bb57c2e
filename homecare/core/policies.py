# homecare/core/policies.py
"""
Row-level security policies.

Each policy is a permissive predicate for one table and one command. The
predicate is a function of the caller's identity expression, so the same
definition renders to ``CREATE POLICY ... USING (... auth.uid() ...)`` for
PostgreSQL and filters queries in-process with the caller's UUID bound in.

Combination rules follow PostgreSQL:
  - policies for the same table/command are OR-ed
  - ALL policies apply to every command
  - for INSERT only WITH CHECK counts; for UPDATE/ALL a missing WITH CHECK
    falls back to USING
  - a table with no applicable policy exposes nothing
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import and_, exists, false, func, or_, true
from sqlalchemy.dialects import postgresql
from sqlalchemy.sql.elements import ColumnElement

from homecare.models import (
    Booking,
    NurseProfile,
    NurseServiceArea,
    NurseSlot,
    PatientProfile,
    Profile,
)

COMMANDS = ("SELECT", "INSERT", "UPDATE", "DELETE", "ALL")

# identity expression inside policy DDL
AUTH_UID = func.auth.uid()

Predicate = Callable[[Any], ColumnElement]


@dataclass(frozen=True)
class Policy:
    name: str
    table: str
    command: str
    roles: Tuple[str, ...]
    using: Optional[Predicate] = None
    with_check: Optional[Predicate] = None

    def __post_init__(self):
        if self.command not in COMMANDS:
            raise ValueError(f"Unknown policy command: {self.command!r}")

    def covers(self, command: str, roles: Iterable[str]) -> bool:
        if self.command not in (command, "ALL"):
            return False
        return bool(set(self.roles).intersection(roles))

    def using_clause(self, uid: Any) -> Optional[ColumnElement]:
        return self.using(uid) if self.using is not None else None

    def check_clause(self, uid: Any) -> Optional[ColumnElement]:
        if self.with_check is not None:
            return self.with_check(uid)
        if self.command in ("UPDATE", "ALL"):
            return self.using_clause(uid)
        return None


def _own_row(col):
    return lambda uid: col == uid


def _anyone(_uid):
    return true()


def _party_to_booking(uid):
    return or_(Booking.patient_id == uid, Booking.nurse_id == uid)


def _patient_booking_for_self(uid):
    return and_(
        Booking.patient_id == uid,
        exists().where(Profile.id == uid, Profile.role == "patient"),
    )


POLICIES: List[Policy] = [
    # ---------- profiles ----------
    Policy("Users can view their own profile", "profiles", "SELECT",
           ("authenticated", ), using=_own_row(Profile.id)),
    Policy("Users can update their own profile", "profiles", "UPDATE",
           ("authenticated", ),
           using=_own_row(Profile.id),
           with_check=_own_row(Profile.id)),
    Policy("Users can insert their own profile", "profiles", "INSERT",
           ("authenticated", ), with_check=_own_row(Profile.id)),

    # ---------- service_areas (writes go through the service role) ----------
    Policy("Public can view service areas", "service_areas", "SELECT",
           ("public", ), using=_anyone),

    # ---------- patient_profiles ----------
    Policy("Patients can view their own profile", "patient_profiles",
           "SELECT", ("authenticated", ), using=_own_row(PatientProfile.id)),
    Policy("Patients can insert their own profile", "patient_profiles",
           "INSERT", ("authenticated", ),
           with_check=_own_row(PatientProfile.id)),
    Policy("Patients can update their own profile", "patient_profiles",
           "UPDATE", ("authenticated", ),
           using=_own_row(PatientProfile.id),
           with_check=_own_row(PatientProfile.id)),

    # ---------- nurse_profiles ----------
    Policy("Public can view nurse profiles", "nurse_profiles", "SELECT",
           ("authenticated", ), using=_anyone),
    Policy("Nurses can insert their own profile", "nurse_profiles", "INSERT",
           ("authenticated", ), with_check=_own_row(NurseProfile.id)),
    Policy("Nurses can update their own profile", "nurse_profiles", "UPDATE",
           ("authenticated", ),
           using=_own_row(NurseProfile.id),
           with_check=_own_row(NurseProfile.id)),

    # ---------- nurse_service_areas ----------
    Policy("Public can view nurse service areas", "nurse_service_areas",
           "SELECT", ("authenticated", ), using=_anyone),
    Policy("Nurses can manage their service areas", "nurse_service_areas",
           "ALL", ("authenticated", ),
           using=_own_row(NurseServiceArea.nurse_id),
           with_check=_own_row(NurseServiceArea.nurse_id)),

    # ---------- nurse_slots ----------
    Policy("Public can view available slots", "nurse_slots", "SELECT",
           ("authenticated", ), using=_anyone),
    Policy("Nurses can manage their slots", "nurse_slots", "ALL",
           ("authenticated", ),
           using=_own_row(NurseSlot.nurse_id),
           with_check=_own_row(NurseSlot.nurse_id)),

    # ---------- bookings ----------
    Policy("Users can view their bookings", "bookings", "SELECT",
           ("authenticated", ), using=_party_to_booking),
    Policy("Patients can create bookings", "bookings", "INSERT",
           ("authenticated", ), with_check=_patient_booking_for_self),
    Policy("Users can update their bookings", "bookings", "UPDATE",
           ("authenticated", ),
           using=_party_to_booking,
           with_check=_party_to_booking),
]

# every table in this list gets ROW LEVEL SECURITY enabled
SECURED_TABLES = (
    "profiles",
    "service_areas",
    "patient_profiles",
    "nurse_profiles",
    "nurse_service_areas",
    "nurse_slots",
    "bookings",
)


def policies_for(table: str,
                 command: str,
                 roles: Iterable[str],
                 policies: Optional[List[Policy]] = None) -> List[Policy]:
    roles = tuple(roles)
    return [
        p for p in (policies if policies is not None else POLICIES)
        if p.table == table and p.covers(command, roles)
    ]


def _combine(clauses: List[Optional[ColumnElement]]) -> ColumnElement:
    clauses = [c for c in clauses if c is not None]
    if not clauses:
        return false()
    if len(clauses) == 1:
        return clauses[0]
    return or_(*clauses)


def using_for(table: str, command: str, roles: Iterable[str],
              uid: Any) -> ColumnElement:
    """OR of USING predicates: which existing rows `command` may touch."""
    return _combine(
        [p.using_clause(uid) for p in policies_for(table, command, roles)])


def check_for(table: str, command: str, roles: Iterable[str],
              uid: Any) -> ColumnElement:
    """OR of WITH CHECK predicates: which new rows `command` may produce."""
    return _combine(
        [p.check_clause(uid) for p in policies_for(table, command, roles)])


# =========================================================
# DDL RENDERING (PostgreSQL)
# =========================================================
_pg_dialect = postgresql.dialect()


def _sql(expr: ColumnElement) -> str:
    return str(
        expr.compile(dialect=_pg_dialect,
                     compile_kwargs={"literal_binds": True}))


def render_create_policy(policy: Policy) -> str:
    prep = _pg_dialect.identifier_preparer
    parts = [
        f"CREATE POLICY {prep.quote_identifier(policy.name)}",
        f"ON {prep.quote(policy.table)}",
        f"FOR {policy.command}",
        f"TO {', '.join(policy.roles)}",
    ]
    using = policy.using_clause(AUTH_UID)
    if using is not None:
        parts.append(f"USING ({_sql(using)})")
    if policy.with_check is not None:
        parts.append(f"WITH CHECK ({_sql(policy.with_check(AUTH_UID))})")
    return "\n  ".join(parts)


def render_drop_policy(name: str, table: str) -> str:
    prep = _pg_dialect.identifier_preparer
    return (f"DROP POLICY IF EXISTS {prep.quote_identifier(name)} "
            f"ON {prep.quote(table)}")


def policy_index(policies: Optional[List[Policy]] = None
                 ) -> Dict[Tuple[str, str], Policy]:
    """(table, name) -> policy; the key PostgreSQL itself uses."""
    return {(p.table, p.name): p
            for p in (policies if policies is not None else POLICIES)}
