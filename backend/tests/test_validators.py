"""
Praxis OS Backend: Identifier and Payload Validator Tests
==========================================================

What we test:
    ✅ Canonical UUIDs only (whole string, no trailing newline); the operation's
       message on rejection
    ✅ Required query parameters are trimmed; blank counts as missing
    ✅ Short invite tokens are rejected
    ✅ Not JSON → 400 "Ungültiges JSON." regardless of the operation
    ✅ Schema failure → 422 (or the declared 400) with flattened field errors
"""

import json
import uuid

import pytest
from starlette.requests import Request

from praxis.exceptions import BadRequestError, InvalidIdentifierError, MalformedJSONError, PayloadValidationError
from praxis.pipeline.identifiers import (
    require_query_params,
    validate_identifier,
    validate_identifiers,
    validate_token,
)
from praxis.pipeline.payload import parse_payload
from praxis.schemas.course import EnrollmentStatus, EnrollmentStatusUpdate
from praxis.schemas.patient import ArchiveRequest
from praxis.schemas.push import PreferencesUpdate, SendPushRequest, UnsubscribeRequest

VALID_ID = "6f1c2d3e-4a5b-4c6d-8e7f-0123456789ab"


def body_request(body: bytes) -> Request:
    async def receive():
        return {"type": "http.request", "body": body, "more_body": False}

    scope = {"type": "http", "method": "POST", "path": "/", "headers": [], "query_string": b""}
    return Request(scope, receive)


def query_request(query: str) -> Request:
    scope = {"type": "http", "method": "GET", "path": "/", "headers": [], "query_string": query.encode()}
    return Request(scope)


class TestValidateIdentifier:
    def test_canonical_uuid(self):
        assert validate_identifier(VALID_ID) == uuid.UUID(VALID_ID)
        assert validate_identifier(VALID_ID.upper()) == uuid.UUID(VALID_ID)

    @pytest.mark.parametrize(
        "value",
        [
            "not-a-uuid",
            "",
            "6f1c2d3e4a5b4c6d8e7f0123456789ab",
            "{6f1c2d3e-4a5b-4c6d-8e7f-0123456789ab}",
            "urn:uuid:6f1c2d3e-4a5b-4c6d-8e7f-0123456789ab",
            VALID_ID + "0",
            VALID_ID + "\n",
            " " + VALID_ID,
        ],
    )
    def test_rejected_with_operation_message(self, value):
        with pytest.raises(InvalidIdentifierError) as exc_info:
            validate_identifier(value, "Ungültige Kurs-ID.")

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Ungültige Kurs-ID."

    def test_identifiers_all_or_nothing(self):
        with pytest.raises(InvalidIdentifierError) as exc_info:
            validate_identifiers([VALID_ID, "x"])
        assert exc_info.value.message == "Ungültige ID."


class TestQueryParamsAndTokens:
    def test_values_are_trimmed(self):
        request = query_request("vorname=%20Anna%20&nachname=Muster")
        assert require_query_params(request, ("vorname", "nachname"), "fehlt") == {
            "vorname": "Anna",
            "nachname": "Muster",
        }

    @pytest.mark.parametrize("query", ["vorname=Anna", "vorname=Anna&nachname=%20%20"])
    def test_missing_or_blank(self, query):
        with pytest.raises(BadRequestError) as exc_info:
            require_query_params(query_request(query), ("vorname", "nachname"), "vorname und nachname fehlen.")
        assert exc_info.value.message == "vorname und nachname fehlen."

    def test_short_token(self):
        with pytest.raises(InvalidIdentifierError) as exc_info:
            validate_token("short")
        assert exc_info.value.message == "Ungültiger Token."
        assert validate_token("a" * 10) == "a" * 10


class TestParsePayload:
    @pytest.mark.asyncio
    async def test_valid_body(self):
        payload = await parse_payload(body_request(b'{"status": "abgeschlossen"}'), EnrollmentStatusUpdate)
        assert payload.status is EnrollmentStatus.ABGESCHLOSSEN

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [b"{status:", b"", b"\xff"])
    async def test_malformed_json_is_400(self, body):
        with pytest.raises(MalformedJSONError) as exc_info:
            await parse_payload(body_request(body), EnrollmentStatusUpdate, invalid_status=422)

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Ungültiges JSON."

    @pytest.mark.asyncio
    async def test_schema_failure_is_422_with_field_errors(self):
        with pytest.raises(PayloadValidationError) as exc_info:
            await parse_payload(body_request(b'{"status": "invalid"}'), EnrollmentStatusUpdate)

        error = exc_info.value
        assert error.status_code == 422
        assert error.message == "Validierungsfehler."
        assert list(error.details["fieldErrors"]) == ["status"]
        assert error.details["formErrors"] == []

    @pytest.mark.asyncio
    async def test_declared_400_and_message(self):
        with pytest.raises(PayloadValidationError) as exc_info:
            await parse_payload(
                body_request(b'{"endpoint": "not a url"}'),
                UnsubscribeRequest,
                invalid_status=400,
                message="Ungültige Eingabe.",
            )

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Ungültige Eingabe."
        assert exc_info.value.details["fieldErrors"]["endpoint"] == ["Ungültige URL."]

    @pytest.mark.asyncio
    async def test_uuid_field_rejects_trailing_newline(self):
        body = json.dumps({"patientId": VALID_ID + "\n", "title": "t", "body": "b"}).encode()

        with pytest.raises(PayloadValidationError) as exc_info:
            await parse_payload(body_request(body), SendPushRequest, invalid_status=400)

        assert exc_info.value.details["fieldErrors"]["patientId"] == ["Ungültige UUID."]

    @pytest.mark.asyncio
    async def test_own_validator_message_is_unwrapped(self):
        with pytest.raises(PayloadValidationError) as exc_info:
            await parse_payload(body_request(b'{"reminderTime": "25:00"}'), PreferencesUpdate)

        assert exc_info.value.details["fieldErrors"]["reminderTime"] == ["Ungültiges Zeitformat. Erwartet HH:MM."]

    @pytest.mark.asyncio
    async def test_cross_field_rule_goes_to_form_errors(self):
        with pytest.raises(PayloadValidationError) as exc_info:
            await parse_payload(body_request(b"{}"), PreferencesUpdate)

        assert exc_info.value.details["formErrors"] == ["Mindestens ein Feld muss angegeben werden."]

    @pytest.mark.asyncio
    async def test_non_object_body_goes_to_form_errors(self):
        with pytest.raises(PayloadValidationError) as exc_info:
            await parse_payload(body_request(b"[1, 2]"), ArchiveRequest)

        assert exc_info.value.details["fieldErrors"] == {}
        assert len(exc_info.value.details["formErrors"]) == 1

    @pytest.mark.asyncio
    async def test_archive_flag_must_be_boolean(self):
        with pytest.raises(PayloadValidationError) as exc_info:
            await parse_payload(body_request(b'{"archive": "true"}'), ArchiveRequest)

        assert exc_info.value.details["fieldErrors"]["archive"] == [
            "archive muss true (archivieren) oder false (reaktivieren) sein."
        ]
