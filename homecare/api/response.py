# homecare/api/response.py
from __future__ import annotations

from typing import Any, Dict, Iterable, Optional, Type

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from homecare.core.errors import HomecareError


def _send(payload: Dict[str, Any], status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code,
                        content=jsonable_encoder(payload))


def ok(
    data: Any = None,
    *,
    meta: Optional[Dict[str, Any]] = None,
    status_code: int = 200,
) -> JSONResponse:
    """{"ok": true, "data": ..., "meta": {...}}; meta only when given."""
    payload: Dict[str, Any] = {"ok": True, "data": data}
    if meta is not None:
        payload["meta"] = meta
    return _send(payload, status_code)


def ok_rows(rows: Iterable[Any], schema: Type[BaseModel]) -> JSONResponse:
    """List endpoints: ORM rows through `schema`, row count in meta."""
    items = [schema.model_validate(r) for r in rows]
    return ok(items, meta={"count": len(items)})


def err(
    msg: str = "Something went wrong",
    *,
    status_code: int = 400,
    code: Optional[str] = None,
    details: Any = None,
) -> JSONResponse:
    return _send(
        {
            "ok": False,
            "error": {
                "msg": msg,
                "code": code,
                "details": details
            },
        }, status_code)


def err_from(exc: HomecareError) -> JSONResponse:
    return err(exc.msg, status_code=exc.status_code, code=exc.code)
