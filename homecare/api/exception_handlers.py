# homecare/api/exception_handlers.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from homecare.api.response import err, err_from
from homecare.core.errors import HomecareError

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(HomecareError)
    async def domain_exception_handler(request: Request,
                                       exc: HomecareError) -> JSONResponse:
        return err_from(exc)

    @app.exception_handler(IntegrityError)
    async def integrity_exception_handler(request: Request,
                                          exc: IntegrityError) -> JSONResponse:
        # constraint name only; the row values stay out of the response
        logger.info("constraint violation on %s: %s", request.url.path,
                    exc.orig)
        return err(msg="Request conflicts with existing data",
                   status_code=409,
                   code="constraint_violation")

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
            request: Request, exc: StarletteHTTPException) -> JSONResponse:
        msg = exc.detail if isinstance(exc.detail, str) else "Request failed"
        return err(msg=msg, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
            request: Request, exc: RequestValidationError) -> JSONResponse:
        return err(msg="Validation error",
                   status_code=422,
                   code="validation_error",
                   details=[{
                       "loc": e.get("loc"),
                       "msg": e.get("msg"),
                       "type": e.get("type"),
                   } for e in exc.errors()])

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request,
                                          exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s", request.url.path)
        return err(msg="Internal server error", status_code=500)
