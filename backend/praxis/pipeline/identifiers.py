"""
Praxis OS Backend: Resource Identifier Validator
=================================================

What:  Pure format checks for path identifiers, required query parameters
       and single-use tokens.
Why:   Malformed input is rejected with 400 before it reaches a query.
"""

import uuid
from typing import Dict, Iterable, List

from fastapi import Request

from praxis.exceptions import BadRequestError, InvalidIdentifierError
from praxis.schemas.common import UUID_PATTERN

MIN_TOKEN_LENGTH = 10


def validate_identifier(value: str, message: str = InvalidIdentifierError.default_message) -> uuid.UUID:
    """
    Checks `value` against the canonical 8-4-4-4-12 hex format.

    uuid.UUID alone is too lenient (it accepts braces, URNs and missing
    hyphens), so the whole string must match the pattern first. `$` alone
    would still let a trailing newline through.
    """
    if not isinstance(value, str) or not UUID_PATTERN.fullmatch(value):
        raise InvalidIdentifierError(message)
    return uuid.UUID(value)


def validate_identifiers(
    values: Iterable[str], message: str = InvalidIdentifierError.default_message
) -> List[uuid.UUID]:
    """All-or-nothing: one bad identifier rejects the request with `message`."""
    return [validate_identifier(value, message) for value in values]


def require_query_params(request: Request, names: Iterable[str], message: str) -> Dict[str, str]:
    """Returns the trimmed values of required query parameters."""
    values = {}
    for name in names:
        value = (request.query_params.get(name) or "").strip()
        if not value:
            raise BadRequestError(message)
        values[name] = value
    return values


def validate_token(
    token: str,
    message: str = "Ungültiger Token.",
    min_length: int = MIN_TOKEN_LENGTH,
) -> str:
    if not token or len(token) < min_length:
        raise InvalidIdentifierError(message)
    return token
