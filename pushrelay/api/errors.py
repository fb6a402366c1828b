import logging
from typing import List

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError

from pushrelay.common.constants import ErrorMessages
from pushrelay.common.response_common import ResponseCommon

logger = logging.getLogger(__name__)

# Errors that mean the caller left a required field out or empty
_MISSING_ERROR_TYPES = {"missing", "string_too_short"}


def _field_name(loc) -> str:
    parts = [str(part) for part in loc if part != "body"]
    return ".".join(parts) or "body"


def validation_message(errors: List[dict]) -> str:
    missing = [_field_name(err["loc"]) for err in errors if err.get("type") in _MISSING_ERROR_TYPES]
    if missing:
        return f"{', '.join(dict.fromkeys(missing))} required"
    if errors:
        err = errors[0]
        return f"{_field_name(err['loc'])} is invalid: {err.get('msg', ErrorMessages.VALIDATION_ERROR)}"
    return ErrorMessages.VALIDATION_ERROR


async def request_validation_handler(request: Request, exc: RequestValidationError):
    message = validation_message(exc.errors())
    logger.info("Rejected %s %s: %s", request.method, request.url.path, message)
    return ResponseCommon.error_response(message, code=status.HTTP_400_BAD_REQUEST).to_response()


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return ResponseCommon.error_response(
        str(exc) or ErrorMessages.INTERNAL_ERROR,
        code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    ).to_response()


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
