"""
Praxis OS Backend: Payload Validator
=====================================

What:  Reads a JSON body and validates it against a pydantic schema.
How:   Two distinct failures:
           body is not JSON         → 400 "Ungültiges JSON."
           body fails the schema    → 422 (or the operation's status) with
                                      {"formErrors": [...], "fieldErrors": {...}}

Field errors are keyed by the top-level field name as sent on the wire
(aliases included); errors that belong to no field (wrong body type,
cross-field rules) go to formErrors.
"""

import json
import logging
from typing import Any, Dict, List, Tuple, Type, TypeVar

from fastapi import Request
from pydantic import BaseModel, ValidationError

from praxis.exceptions import MalformedJSONError, PayloadValidationError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def error_message(error: Dict[str, Any]) -> str:
    # Messages raised from our own validators come through without the
    # "Value error, " prefix pydantic adds
    if error.get("type") == "value_error":
        cause = (error.get("ctx") or {}).get("error")
        if cause is not None:
            return str(cause)
    return error.get("msg", "Ungültiger Wert.")


def flatten_validation_error(exc: ValidationError) -> Tuple[List[str], Dict[str, List[str]]]:
    form_errors: List[str] = []
    field_errors: Dict[str, List[str]] = {}
    for error in exc.errors():
        loc = error.get("loc") or ()
        message = error_message(error)
        if loc:
            field_errors.setdefault(str(loc[0]), []).append(message)
        else:
            form_errors.append(message)
    return form_errors, field_errors


async def read_json(request: Request) -> Any:
    raw = await request.body()
    try:
        return json.loads(raw)
    except ValueError:
        # UnicodeDecodeError is a ValueError too
        raise MalformedJSONError()


async def parse_payload(
    request: Request,
    schema: Type[ModelT],
    invalid_status: int = 422,
    message: str = PayloadValidationError.default_message,
) -> ModelT:
    """
    Returns the validated, immutable payload.

    Args:
        schema:          pydantic model describing the body.
        invalid_status:  Status for schema failures (422, or 400 where the
                         operation declares it).
        message:         `error` text for schema failures.
    """
    body = await read_json(request)
    try:
        return schema.model_validate(body)
    except ValidationError as e:
        form_errors, field_errors = flatten_validation_error(e)
        logger.debug("Payload rejected by %s: %s", schema.__name__, sorted(field_errors))
        raise PayloadValidationError(
            message=message,
            field_errors=field_errors,
            form_errors=form_errors,
            status_code=invalid_status,
        )
