"""
Praxis OS Backend: API Endpoint Tests
======================================

What:  Requests through the full app (middleware, dependencies, handlers,
       exception mapping) with the session, auth client and push sender
       replaced by fakes.

What we test:
    ✅ Non-owner publish → 403 with the publish message
    ✅ Invalid enrollment status → 422 with fieldErrors.status
    ✅ Patient calling the admin event log → 403, event query never runs
    ✅ Non-URL unsubscribe endpoint → 400 before the profile lookup
    ✅ 401 / 400 preconditions never touch the session
    ✅ Identifiers with a trailing newline → 400, never a 500
    ✅ Invite lookup 410, duplicate check validation, patient archive stages
    ✅ Own record found through the email fallback
    ✅ Shared-secret endpoints, health probe, error envelope for unknown routes
"""

from datetime import date
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from conftest import ADMIN_TOKEN, PATIENT_TOKEN, THERAPIST_ID, THERAPIST_TOKEN, bearer

COURSE_ID = "6f1c2d3e-4a5b-4c6d-8e7f-0123456789ab"
ENROLLMENT_ID = "0a1b2c3d-4e5f-4a6b-8c7d-9e0f1a2b3c4d"
PATIENT_ID = "9f8e7d6c-5b4a-4392-8170-6f5e4d3c2b1a"
INVITE_TOKEN = "invite-token-0123456789"
CRON = {"x-cron-secret": "test-cron-secret"}


def patient_record(**overrides):
    values = {
        "id": uuid4(),
        "vorname": "Anna",
        "nachname": "Muster",
        "email": "patient@example.com",
        "geburtsdatum": date(1990, 4, 1),
        "user_id": None,
        "invite_status": "pending",
    }
    values.update(overrides)
    return SimpleNamespace(**values)


# ── Scenarios ────────────────────────────────────────────────────────────────


class TestScenarios:
    @pytest.mark.asyncio
    async def test_publish_by_non_owner_is_403(self, test_client, mock_db_session, make_result):
        course = SimpleNamespace(id=uuid4(), created_by=uuid4(), version=1, is_archived=False)
        mock_db_session.execute.return_value = make_result(scalar=course)

        response = await test_client.post(f"/api/courses/{COURSE_ID}/publish", headers=bearer(THERAPIST_TOKEN))

        assert response.status_code == 403
        assert response.json() == {"error": "Keine Berechtigung oder Kurs nicht gefunden."}

    @pytest.mark.asyncio
    async def test_invalid_enrollment_status_is_422(self, test_client, mock_db_session):
        response = await test_client.patch(
            f"/api/courses/{COURSE_ID}/enrollments/{ENROLLMENT_ID}",
            json={"status": "invalid"},
            headers=bearer(THERAPIST_TOKEN),
        )

        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "Validierungsfehler."
        assert body["details"]["fieldErrors"]["status"]
        mock_db_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_patient_cannot_read_event_log(self, test_client, mock_db_session, make_result):
        mock_db_session.execute.return_value = make_result(scalar="patient")

        with patch("praxis.routes.admin.admin_service") as mock_admin:
            mock_admin.list_webhook_events = AsyncMock()
            response = await test_client.get("/api/admin/webhook-events", headers=bearer(PATIENT_TOKEN))

        assert response.status_code == 403
        assert response.json() == {"error": "Nur Administratoren können auf das Event-Log zugreifen."}
        mock_admin.list_webhook_events.assert_not_awaited()
        # Only the role lookup ran
        assert mock_db_session.execute.await_count == 1

    @pytest.mark.asyncio
    async def test_unsubscribe_with_bad_endpoint_is_400_before_lookup(self, test_client, mock_db_session):
        response = await test_client.request(
            "DELETE",
            "/api/me/push/unsubscribe",
            json={"endpoint": "not-a-url"},
            headers=bearer(PATIENT_TOKEN),
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Ungültige Eingabe."
        assert "endpoint" in body["details"]["fieldErrors"]
        mock_db_session.execute.assert_not_called()


# ── Preconditions ────────────────────────────────────────────────────────────


class TestPreconditions:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "method, path",
        [
            ("POST", f"/api/courses/{COURSE_ID}/archive"),
            ("POST", f"/api/courses/{COURSE_ID}/publish"),
            ("PATCH", f"/api/courses/{COURSE_ID}/enrollments/{ENROLLMENT_ID}"),
            ("GET", "/api/me/profile"),
            ("GET", "/api/me/push/preferences"),
        ],
    )
    async def test_anonymous_is_401_without_data_call(self, test_client, mock_db_session, method, path):
        response = await test_client.request(method, path, json={"status": "aktiv"})

        assert response.status_code == 401
        assert response.json() == {"error": "Nicht autorisiert."}
        mock_db_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_operation_specific_401_message(self, test_client):
        response = await test_client.get("/api/admin/webhook-events")

        assert response.status_code == 401
        assert response.json() == {"error": "Nicht autorisiert. Bitte einloggen."}

    @pytest.mark.asyncio
    async def test_invalid_course_id_is_400_without_data_call(self, test_client, mock_db_session):
        response = await test_client.post("/api/courses/not-a-uuid/archive", headers=bearer(THERAPIST_TOKEN))

        assert response.status_code == 400
        assert response.json() == {"error": "Ungültige Kurs-ID."}
        mock_db_session.execute.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("suffix", ["%0A", "%20"])
    async def test_course_id_with_trailing_whitespace_is_400(self, test_client, mock_db_session, suffix):
        response = await test_client.post(
            f"/api/courses/{COURSE_ID}{suffix}/archive", headers=bearer(THERAPIST_TOKEN)
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Ungültige Kurs-ID."}
        mock_db_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_enrollment_ids_share_one_message(self, test_client):
        response = await test_client.patch(
            f"/api/courses/{COURSE_ID}/enrollments/123",
            json={"status": "aktiv"},
            headers=bearer(THERAPIST_TOKEN),
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Ungültige ID."}

    @pytest.mark.asyncio
    async def test_malformed_json_is_400(self, test_client, mock_db_session):
        response = await test_client.patch(
            f"/api/courses/{COURSE_ID}/enrollments/{ENROLLMENT_ID}",
            content=b"{status: aktiv",
            headers={**bearer(THERAPIST_TOKEN), "Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Ungültiges JSON."}
        mock_db_session.execute.assert_not_called()


# ── Courses ──────────────────────────────────────────────────────────────────


class TestCourseEndpoints:
    @pytest.mark.asyncio
    async def test_archive_then_archive_again(self, test_client, mock_db_session, make_result):
        mock_db_session.execute.side_effect = [make_result(scalar=uuid4()), make_result(scalar=None)]

        first = await test_client.post(f"/api/courses/{COURSE_ID}/archive", headers=bearer(THERAPIST_TOKEN))
        second = await test_client.post(f"/api/courses/{COURSE_ID}/archive", headers=bearer(THERAPIST_TOKEN))

        assert first.status_code == 200
        assert first.json() == {"success": True}
        assert second.status_code == 404
        assert second.json() == {"error": "Kurs nicht gefunden oder bereits archiviert."}

    @pytest.mark.asyncio
    async def test_publish_success(self, test_client, mock_db_session, make_result):
        course = SimpleNamespace(id=uuid4(), created_by=THERAPIST_ID, version=4, is_archived=False)
        lesson = SimpleNamespace(id=uuid4(), title="L1", beschreibung=None, video_url=None, exercise_unit=None, order=0)
        mock_db_session.execute.side_effect = [
            make_result(scalar=course),
            make_result(rows=[lesson]),
            make_result(scalar=course.id),
        ]

        response = await test_client.post(f"/api/courses/{COURSE_ID}/publish", headers=bearer(THERAPIST_TOKEN))

        assert response.status_code == 200
        assert response.json() == {"version": 5, "status": "aktiv"}

    @pytest.mark.asyncio
    async def test_publish_without_lessons_is_422(self, test_client, mock_db_session, make_result):
        course = SimpleNamespace(id=uuid4(), created_by=THERAPIST_ID, version=0, is_archived=False)
        mock_db_session.execute.side_effect = [make_result(scalar=course), make_result(rows=[])]

        response = await test_client.post(f"/api/courses/{COURSE_ID}/publish", headers=bearer(THERAPIST_TOKEN))

        assert response.status_code == 422
        assert response.json() == {"error": "Der Kurs muss mindestens eine Lektion enthalten."}

    @pytest.mark.asyncio
    async def test_enrollment_update(self, test_client, mock_db_session, make_result):
        enrollment = SimpleNamespace(
            to_dict=lambda: {"id": ENROLLMENT_ID, "status": "abgebrochen", "completed_at": None}
        )
        mock_db_session.execute.return_value = make_result(rows=[enrollment])

        response = await test_client.patch(
            f"/api/courses/{COURSE_ID}/enrollments/{ENROLLMENT_ID}",
            json={"status": "abgebrochen"},
            headers=bearer(THERAPIST_TOKEN),
        )

        assert response.status_code == 200
        assert response.json()["enrollment"]["status"] == "abgebrochen"

    @pytest.mark.asyncio
    async def test_store_error_is_generic_500(self, test_client, mock_db_session):
        mock_db_session.execute.side_effect = OperationalError("update", {}, Exception("connection reset"))

        response = await test_client.post(f"/api/courses/{COURSE_ID}/archive", headers=bearer(THERAPIST_TOKEN))

        assert response.status_code == 500
        assert response.json() == {"error": "Kurs konnte nicht archiviert werden."}
        assert "connection reset" not in response.text


# ── Patients ─────────────────────────────────────────────────────────────────


class TestPatientEndpoints:
    @pytest.mark.asyncio
    async def test_consumed_invite_is_410(self, test_client, mock_db_session, make_result):
        mock_db_session.execute.return_value = make_result(rows=[patient_record(invite_status="registered")])

        response = await test_client.get(f"/api/patients/invite/{INVITE_TOKEN}")

        assert response.status_code == 410
        assert response.json() == {"error": "Diese Einladung wurde bereits verwendet."}

    @pytest.mark.asyncio
    async def test_invite_lookup_needs_no_session(self, test_client, mock_db_session, make_result):
        mock_db_session.execute.return_value = make_result(rows=[patient_record()])

        response = await test_client.get(f"/api/patients/invite/{INVITE_TOKEN}")

        assert response.status_code == 200
        assert response.json() == {"vorname": "Anna", "nachname": "Muster", "email": "patient@example.com"}

    @pytest.mark.asyncio
    async def test_short_invite_token_is_400(self, test_client, mock_db_session):
        response = await test_client.get("/api/patients/invite/abc")

        assert response.status_code == 400
        assert response.json() == {"error": "Ungültiger Token."}
        mock_db_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_complete_invite_requires_login(self, test_client):
        response = await test_client.post(f"/api/patients/invite/{INVITE_TOKEN}/complete")

        assert response.status_code == 401
        assert response.json() == {"error": "Nicht autorisiert. Bitte zuerst anmelden."}

    @pytest.mark.asyncio
    async def test_complete_invite(self, test_client, mock_db_session, make_result):
        record = patient_record()
        mock_db_session.execute.side_effect = [
            make_result(rows=[record]),
            make_result(),
            make_result(scalar=record.id),
        ]

        response = await test_client.post(
            f"/api/patients/invite/{INVITE_TOKEN}/complete", headers=bearer(PATIENT_TOKEN)
        )

        assert response.status_code == 200
        assert response.json() == {"success": True}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "query, message",
        [
            ("vorname=Anna&nachname=Muster", "vorname, nachname und geburtsdatum sind erforderlich."),
            ("vorname=Anna&nachname=Muster&geburtsdatum=01.04.1990", "geburtsdatum muss im Format YYYY-MM-DD sein."),
            ("vorname=Anna&nachname=Muster&geburtsdatum=1990-02-30", "geburtsdatum muss im Format YYYY-MM-DD sein."),
        ],
    )
    async def test_duplicate_check_validation(self, test_client, mock_db_session, query, message):
        response = await test_client.get(f"/api/patients/check-duplicate?{query}", headers=bearer(THERAPIST_TOKEN))

        assert response.status_code == 400
        assert response.json() == {"error": message}
        mock_db_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_duplicate_check(self, test_client, mock_db_session, make_result):
        row = SimpleNamespace(id=uuid4(), vorname="Anna", nachname="Muster", geburtsdatum=date(1990, 4, 1))
        mock_db_session.execute.return_value = make_result(first=row)

        response = await test_client.get(
            "/api/patients/check-duplicate?vorname=anna&nachname=muster&geburtsdatum=1990-04-01",
            headers=bearer(THERAPIST_TOKEN),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["isDuplicate"] is True
        assert body["duplicate"]["geburtsdatum"] == "1990-04-01"

    @pytest.mark.asyncio
    async def test_archive_by_treating_therapist(self, test_client, mock_db_session, make_result):
        row = SimpleNamespace(id=uuid4(), vorname="Anna", nachname="Muster", archived_at=None)
        mock_db_session.execute.side_effect = [
            make_result(scalar="physiotherapeut"),
            make_result(first=(THERAPIST_ID,)),
            make_result(first=row),
        ]

        response = await test_client.patch(
            f"/api/patients/{PATIENT_ID}/archive", json={"archive": False}, headers=bearer(THERAPIST_TOKEN)
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Anna Muster wurde reaktiviert."

    @pytest.mark.asyncio
    async def test_archive_by_other_therapist_is_403(self, test_client, mock_db_session, make_result):
        mock_db_session.execute.side_effect = [
            make_result(scalar="physiotherapeut"),
            make_result(first=(uuid4(),)),
        ]

        response = await test_client.patch(
            f"/api/patients/{PATIENT_ID}/archive", json={"archive": True}, headers=bearer(THERAPIST_TOKEN)
        )

        assert response.status_code == 403
        assert response.json() == {"error": "Patient nicht gefunden oder keine Berechtigung."}

    @pytest.mark.asyncio
    async def test_archive_of_missing_patient_is_404(self, test_client, mock_db_session, make_result):
        mock_db_session.execute.side_effect = [
            make_result(scalar="physiotherapeut"),
            make_result(first=None),
        ]

        response = await test_client.patch(
            f"/api/patients/{PATIENT_ID}/archive", json={"archive": True}, headers=bearer(THERAPIST_TOKEN)
        )

        assert response.status_code == 404
        assert response.json() == {"error": "Patient nicht gefunden oder keine Berechtigung."}

    @pytest.mark.asyncio
    async def test_archive_by_patient_role_is_403_before_id_check(self, test_client, mock_db_session, make_result):
        mock_db_session.execute.return_value = make_result(scalar="patient")

        response = await test_client.patch(
            "/api/patients/not-a-uuid/archive", json={"archive": True}, headers=bearer(PATIENT_TOKEN)
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_archive_flag_must_be_boolean(self, test_client, mock_db_session, make_result):
        mock_db_session.execute.return_value = make_result(scalar="admin")

        response = await test_client.patch(
            f"/api/patients/{PATIENT_ID}/archive", json={"archive": "yes"}, headers=bearer(ADMIN_TOKEN)
        )

        assert response.status_code == 422
        assert "archive" in response.json()["details"]["fieldErrors"]
        # Role lookup only; ownership and write never ran
        assert mock_db_session.execute.await_count == 1


# ── Own record ───────────────────────────────────────────────────────────────


class TestMeEndpoints:
    @pytest.mark.asyncio
    async def test_profile_without_record_is_empty(self, test_client, mock_db_session, make_result):
        mock_db_session.execute.return_value = make_result(rows=[])

        response = await test_client.get("/api/me/profile", headers=bearer(PATIENT_TOKEN))

        assert response.status_code == 200
        assert response.json() == {"patient": None}
        # user_id lookup, then email fallback
        assert mock_db_session.execute.await_count == 2

    @pytest.mark.asyncio
    async def test_profile(self, test_client, mock_db_session, make_result):
        mock_db_session.execute.return_value = make_result(rows=[patient_record()])

        response = await test_client.get("/api/me/profile", headers=bearer(PATIENT_TOKEN))

        assert response.json()["patient"]["geburtsdatum"] == "1990-04-01"

    @pytest.mark.asyncio
    async def test_profile_found_by_email_fallback(self, test_client, mock_db_session, make_result):
        mock_db_session.execute.side_effect = [make_result(rows=[]), make_result(rows=[patient_record()])]

        response = await test_client.get("/api/me/profile", headers=bearer(PATIENT_TOKEN))

        assert response.status_code == 200
        assert response.json()["patient"]["email"] == "patient@example.com"
        assert mock_db_session.execute.await_count == 2

    @pytest.mark.asyncio
    async def test_push_preferences_found_by_email_fallback(self, test_client, mock_db_session, make_result):
        mock_db_session.execute.side_effect = [
            make_result(rows=[]),
            make_result(rows=[patient_record()]),
            make_result(rows=[]),
        ]

        response = await test_client.get("/api/me/push/preferences", headers=bearer(PATIENT_TOKEN))

        assert response.status_code == 200
        assert response.json() == {"reminderEnabled": True, "reminderTime": "08:00", "chatEnabled": True}

    @pytest.mark.asyncio
    async def test_push_preferences_without_record_is_404(self, test_client, mock_db_session, make_result):
        mock_db_session.execute.return_value = make_result(rows=[])

        response = await test_client.get("/api/me/push/preferences", headers=bearer(PATIENT_TOKEN))

        assert response.status_code == 404
        assert response.json() == {"error": "Kein Patientenprofil gefunden."}

    @pytest.mark.asyncio
    async def test_subscribe(self, test_client, mock_db_session, make_result):
        mock_db_session.execute.side_effect = [make_result(rows=[patient_record()]), make_result(scalar=uuid4())]

        response = await test_client.post(
            "/api/me/push/subscribe",
            json={
                "subscription": {
                    "endpoint": "https://fcm.googleapis.com/fcm/send/abc",
                    "keys": {"p256dh": "key", "auth": "secret"},
                },
                "deviceType": "android",
            },
            headers=bearer(PATIENT_TOKEN),
        )

        assert response.status_code == 201
        assert response.json() == {"ok": True}

    @pytest.mark.asyncio
    async def test_preferences_update_needs_a_field(self, test_client, mock_db_session):
        response = await test_client.patch("/api/me/push/preferences", json={}, headers=bearer(PATIENT_TOKEN))

        assert response.status_code == 400
        assert response.json()["details"]["formErrors"] == ["Mindestens ein Feld muss angegeben werden."]
        mock_db_session.execute.assert_not_called()


# ── Server-to-server ─────────────────────────────────────────────────────────


class TestInternalEndpoints:
    @pytest.mark.asyncio
    async def test_push_send_requires_secret(self, test_client, mock_db_session):
        response = await test_client.post("/api/push/send", json={}, headers={"x-cron-secret": "wrong"})

        assert response.status_code == 401
        mock_db_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_push_send_rejects_user_sessions(self, test_client):
        response = await test_client.post("/api/push/send", json={}, headers=bearer(ADMIN_TOKEN))

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_push_send_invalid_payload(self, test_client):
        response = await test_client.post(
            "/api/push/send", json={"patientId": "x", "title": "", "body": "b"}, headers=CRON
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Ungültige Eingabe."
        assert set(body["details"]["fieldErrors"]) == {"patientId", "title"}

    @pytest.mark.asyncio
    async def test_push_send_patient_id_with_trailing_newline(self, test_client, mock_db_session):
        response = await test_client.post(
            "/api/push/send",
            json={"patientId": PATIENT_ID + "\n", "title": "Neue Nachricht", "body": "Hallo"},
            headers=CRON,
        )

        assert response.status_code == 400
        assert "patientId" in response.json()["details"]["fieldErrors"]
        mock_db_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_push_send(self, test_client, mock_db_session, make_result, fake_sender):
        subscription = SimpleNamespace(id=uuid4(), subscription_json={"endpoint": "https://push.example.com/1"})
        mock_db_session.execute.return_value = make_result(rows=[subscription])

        response = await test_client.post(
            "/api/push/send",
            json={"patientId": PATIENT_ID, "title": "Neue Nachricht", "body": "Hallo", "filter": {"chatEnabled": True}},
            headers=CRON,
        )

        assert response.status_code == 200
        assert response.json() == {"ok": True, "sent": 1, "failed": 0, "cleaned": 0}
        assert fake_sender.sent[0][1]["title"] == "Neue Nachricht"

    @pytest.mark.asyncio
    async def test_cron_accepts_bearer_secret(self, test_client, mock_db_session, make_result):
        mock_db_session.execute.return_value = make_result(rows=[])

        response = await test_client.get(
            "/api/cron/training-reminder", headers={"Authorization": "Bearer test-cron-secret"}
        )

        assert response.status_code == 200
        assert response.json() == {"ok": True, "sent": 0, "message": "Keine Subscriptions in dieser Stunde."}


# ── Ambient ──────────────────────────────────────────────────────────────────


class TestAmbient:
    @pytest.mark.asyncio
    async def test_health_unhealthy_is_503(self, test_client):
        engine = MagicMock()
        engine.connect.side_effect = OperationalError("SELECT 1", {}, Exception("refused"))

        with patch("praxis.routes.health.engine", engine):
            response = await test_client.get("/health")

        assert response.status_code == 503
        assert response.json()["database"] == "disconnected"

    @pytest.mark.asyncio
    async def test_health_healthy(self, test_client):
        engine = MagicMock()
        engine.connect.return_value.__aenter__.return_value = AsyncMock()

        with patch("praxis.routes.health.engine", engine):
            response = await test_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_request_id_header(self, test_client):
        response = await test_client.get("/api/me/profile", headers={"X-Request-ID": "abc123"})

        assert response.headers["X-Request-ID"] == "abc123"

    @pytest.mark.asyncio
    async def test_unknown_route_uses_envelope(self, test_client):
        response = await test_client.get("/api/unknown")

        assert response.status_code == 404
        assert set(response.json()) == {"error"}
