"""Errores de dominio y su traducción a respuestas JSON.

Los handlers y crud.py lanzan excepciones; aquí se convierten una sola vez
en el sobre {"success": false, "message": ...} con su código HTTP.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from schemas import ErrorEnvelope

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal Server Error"


class ProductError(Exception):
    status_code = 500
    message = INTERNAL_ERROR_MESSAGE

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        if message:
            self.message = message


class MissingFieldsError(ProductError):
    status_code = 400
    message = "All fields are required"

    def __init__(self, fields=()):
        super().__init__()
        self.fields = list(fields)


class ProductNotFoundError(ProductError):
    status_code = 404
    message = "Product not found"

    def __init__(self, product_id: int):
        super().__init__()
        self.product_id = product_id


class StorageError(ProductError):
    """El detalle real queda en el log; al cliente solo le llega el mensaje genérico."""

    def __init__(self, operation: str):
        super().__init__()
        self.operation = operation


def error_response(status_code: int, message: str, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorEnvelope(message=message).model_dump(),
        headers=headers,
    )


async def _product_error_handler(request: Request, exc: ProductError):
    return error_response(exc.status_code, exc.message)


async def _validation_error_handler(request: Request, exc: RequestValidationError):
    logger.info("Petición inválida en %s %s: %s", request.method, request.url.path, exc.errors())
    return error_response(400, "Invalid request")


async def _unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Error no controlado en %s %s", request.method, request.url.path)
    return error_response(500, INTERNAL_ERROR_MESSAGE)


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(ProductError, _product_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
