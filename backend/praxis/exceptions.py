"""
Praxis OS Backend: Exception Hierarchy
=======================================

What:  Application-specific exceptions, one class per request outcome.
How:   Each exception carries a user-facing message (German, part of the API
       contract) and an optional context dict that is only ever logged.
       Global handlers registered in main.py turn them into the
       `{"error": ..., "details"?: ...}` envelope with the matching status.
Who:   Raised by the pipeline stages, services and routes.

Exception Hierarchy:
    PraxisError (base)
    ├── UnauthenticatedError      → 401
    ├── ForbiddenError            → 403
    ├── BadRequestError           → 400
    │   ├── InvalidIdentifierError
    │   └── MalformedJSONError
    ├── PayloadValidationError    → 422 (or 400 when the operation declares it)
    ├── BusinessRuleError         → 422
    ├── NotFoundError             → 404
    ├── ConflictError             → 409
    ├── AlreadyConsumedError      → 410
    ├── UpstreamError             → 500 (logged, generic message)
    └── ConfigurationError        → 500 (logged, generic message)

Only UpstreamError and ConfigurationError are logged as errors. Everything
else is an expected outcome of a well-behaved request pipeline.
"""

from typing import Any, Dict, List, Optional


class PraxisError(Exception):
    """
    Base exception for all Praxis OS application errors.

    Attributes:
        message:     User-facing error description (returned as `error`)
        context:     Diagnostic info, logged but never returned to the client
        status_code: HTTP status the response mapper uses
    """

    status_code: int = 500
    default_message: str = "Interner Serverfehler."

    def __init__(
        self,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.context = context or {}
        super().__init__(self.message)

    @property
    def details(self) -> Optional[Dict[str, Any]]:
        """Client-visible details; only validation errors expose any."""
        return None


class UnauthenticatedError(PraxisError):
    """No resolvable caller identity, or a missing/wrong shared secret."""

    status_code = 401
    default_message = "Nicht autorisiert."


class ForbiddenError(PraxisError):
    """Caller is known but lacks the required role or ownership."""

    status_code = 403
    default_message = "Keine Berechtigung."


class BadRequestError(PraxisError):
    """Request is malformed before any schema is applied."""

    status_code = 400
    default_message = "Ungültige Anfrage."


class InvalidIdentifierError(BadRequestError):
    """
    A path identifier, query parameter or token failed its format check.

    Raised before any data-layer call, so malformed input never reaches a
    parameterized query.
    """

    default_message = "Ungültige ID."


class MalformedJSONError(BadRequestError):
    """Request body could not be decoded as JSON."""

    default_message = "Ungültiges JSON."


class PayloadValidationError(PraxisError):
    """
    Raised when a syntactically valid body fails schema validation.

    `field_errors` maps a field name to its list of messages; `form_errors`
    holds messages that do not belong to a single field. Serialized as
    `details = {"formErrors": [...], "fieldErrors": {...}}`.
    """

    status_code = 422
    default_message = "Validierungsfehler."

    def __init__(
        self,
        message: Optional[str] = None,
        field_errors: Optional[Dict[str, List[str]]] = None,
        form_errors: Optional[List[str]] = None,
        status_code: int = 422,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
        self.field_errors = field_errors or {}
        self.form_errors = form_errors or []
        self.status_code = status_code

    @property
    def details(self) -> Dict[str, Any]:
        return {"formErrors": self.form_errors, "fieldErrors": self.field_errors}


class BusinessRuleError(PraxisError):
    """The target is in a state the action does not allow (e.g. publishing a course without lessons)."""

    status_code = 422
    default_message = "Aktion nicht möglich."


class NotFoundError(PraxisError):
    """
    No row matched a well-formed identifier.

    Also used for conditional writes that matched zero rows because the row
    is already in its terminal state (e.g. archiving an archived course).
    """

    status_code = 404
    default_message = "Nicht gefunden."


class ConflictError(PraxisError):
    """A conditional write lost against a concurrent change, or the action was already completed."""

    status_code = 409
    default_message = "Konflikt mit dem aktuellen Zustand."


class AlreadyConsumedError(PraxisError):
    """A single-use token (e.g. a registration invite) has already been used."""

    status_code = 410
    default_message = "Dieser Link wurde bereits verwendet."


class UpstreamError(PraxisError):
    """
    A store or transport call failed unexpectedly.

    The message returned to the client stays generic; the underlying error is
    only recorded in `context` for the server log.
    """

    status_code = 500
    default_message = "Ein interner Fehler ist aufgetreten."


class ConfigurationError(PraxisError):
    """A required server-side setting (secret, key) is missing."""

    status_code = 500
    default_message = "Serverkonfiguration fehlt."
