# homecare/core/errors.py
from __future__ import annotations


class HomecareError(Exception):
    """Base for domain errors the API layer translates into responses."""

    status_code = 400
    code = "bad_request"

    def __init__(self, msg: str = "Request failed"):
        super().__init__(msg)
        self.msg = msg


class NotFound(HomecareError):
    # Also raised for rows hidden by a policy; callers can't tell the two apart.
    status_code = 404
    code = "not_found"


class PolicyViolation(HomecareError):
    status_code = 403
    code = "policy_violation"

    def __init__(self, table: str, command: str):
        super().__init__(
            f"new row violates row-level security policy for table {table!r}"
            if command in ("INSERT", "UPDATE") else
            f"{command} on {table!r} is not permitted")
        self.table = table
        self.command = command


class AuthError(HomecareError):
    status_code = 401
    code = "unauthorized"


class Forbidden(HomecareError):
    status_code = 403
    code = "forbidden"


class SlotDurationError(HomecareError):
    code = "invalid_slot"


class SlotUnavailable(HomecareError):
    status_code = 409
    code = "slot_unavailable"


class InvalidTransition(HomecareError):
    status_code = 409
    code = "invalid_transition"


class Conflict(HomecareError):
    status_code = 409
    code = "conflict"
