"""
Royal Post endpoint tests.

Tests mock the mail dispatcher (or the Resend SDK). No real emails are sent.

Coverage:
  - POST /api/royal-post happy paths (flat and nested bodies)
  - 400 responses: malformed JSON, validation failures, oversized / non-image photos
  - 500 responses: dispatch failures and unexpected errors
  - Nothing is dispatched when validation or photo checks fail
"""

import base64
import json
import os
from unittest.mock import patch

import pytest

# Ensure env vars are set before importing anything that triggers app imports
os.environ.setdefault("MAIL_PROVIDER", "resend")
os.environ.setdefault("RESEND_API_KEY", "re_test_key")
os.environ.setdefault("CONTACT_EMAIL", "intake@example.com")

from fastapi.testclient import TestClient

from app.models.outbound_email import DispatchReceipt
from app.services.mail_dispatcher import DispatchError

ENDPOINT = "/api/royal-post"


# ---------------------------------------------------------------------------
# Payload builder helpers
# ---------------------------------------------------------------------------

def _make_data_url(size: int = 1024, content_type: str = "image/jpeg") -> str:
    content = (b"\xff\xd8\xff\xe0" + b"\x00" * size)[:size]
    return f"data:{content_type};base64,{base64.b64encode(content).decode()}"


def _make_body(show_second_person: bool = False, **overrides) -> dict:
    body = {
        "branchNumber": "100",
        "firstName1": "John",
        "lastName1": "Doe",
        "phone1": "03001234567",
        "dob1": "1990-01-01",
        "firstName2": "",
        "lastName2": "",
        "phone2": "",
        "dob2": "",
        "showSecondPerson": show_second_person,
    }
    body.update(overrides)
    return body


def _receipt(message_id: str = "msg-123") -> DispatchReceipt:
    return DispatchReceipt(id=message_id, provider="resend")


def _field_names(response) -> list[str]:
    return [f["field"] for f in response.json()["detail"]["fields"]]


# ---------------------------------------------------------------------------
# App fixture
# ---------------------------------------------------------------------------

@pytest.fixture()
def client():
    """Return a TestClient for the FastAPI app."""
    from app.main import app
    return TestClient(app)


# ===========================================================================
# Success
# ===========================================================================

class TestRoyalPostSuccess:

    def test_single_person_submission(self, client):
        with patch("app.routers.royal_post.send_royal_post") as mock_send:
            mock_send.return_value = _receipt()
            response = client.post(ENDPOINT, json=_make_body())

        assert response.status_code == 200
        assert response.json() == {"message": "Form submitted successfully", "id": "msg-123"}
        payload = mock_send.call_args.args[0]
        assert payload["branchNumber"] == "100"
        assert payload["showSecondPerson"] == "false"
        assert "photo2" not in payload
        assert "firstName2" not in payload

    def test_nested_body_accepted(self, client):
        body = {
            "branchNumber": "100",
            "personOne": {
                "firstName": "John",
                "lastName": "Doe",
                "phoneNumber": "03001234567",
                "dateOfBirth": "1990-01-01",
            },
            "includeSecondPerson": False,
        }
        with patch("app.routers.royal_post.send_royal_post") as mock_send:
            mock_send.return_value = _receipt()
            response = client.post(ENDPOINT, json=body)

        assert response.status_code == 200
        assert mock_send.call_count == 1

    def test_two_people_with_photos(self, client):
        body = _make_body(
            show_second_person=True,
            firstName2="Jane",
            lastName2="Doe",
            phone2="03007654321",
            dob2="1992-05-05",
            photo1=_make_data_url(),
            photo2=_make_data_url(content_type="image/png"),
        )
        with patch("app.routers.royal_post.send_royal_post") as mock_send:
            mock_send.return_value = _receipt()
            response = client.post(ENDPOINT, json=body)

        assert response.status_code == 200
        payload = mock_send.call_args.args[0]
        assert payload["firstName2"] == "Jane"
        assert payload["photo1"] == body["photo1"]
        assert payload["photo2"].startswith("data:image/png;base64,")

    def test_photo_two_dropped_when_flag_off(self, client):
        body = _make_body(photo1=_make_data_url(), photo2=_make_data_url())
        with patch("app.routers.royal_post.send_royal_post") as mock_send:
            mock_send.return_value = _receipt()
            response = client.post(ENDPOINT, json=body)

        assert response.status_code == 200
        payload = mock_send.call_args.args[0]
        assert "photo1" in payload
        assert "photo2" not in payload

    def test_end_to_end_through_resend(self, client):
        """Only the Resend SDK is mocked; attachments reach it as base64 text."""
        body = _make_body(photo1=_make_data_url(size=64))
        with patch("app.services.mail_dispatcher.resend") as mock_resend:
            mock_resend.Emails.send.return_value = {"id": "re-abc"}
            response = client.post(ENDPOINT, json=body)

        assert response.status_code == 200
        assert response.json()["id"] == "re-abc"
        params = mock_resend.Emails.send.call_args.args[0]
        assert params["subject"] == "New Royal Post Form - Branch 100"
        assert params["attachments"][0]["filename"] == "person1-photo.jpg"
        assert params["attachments"][0]["content"] == body["photo1"].split(",", 1)[1]
        assert "John" in params["html"]


# ===========================================================================
# 400 — malformed input and validation
# ===========================================================================

class TestRoyalPostRejected:

    def test_malformed_json(self, client):
        with patch("app.routers.royal_post.send_royal_post") as mock_send:
            response = client.post(
                ENDPOINT,
                content=b"{not json",
                headers={"Content-Type": "application/json"},
            )

        assert response.status_code == 400
        assert response.json()["detail"]["error_code"] == "malformed_input"
        mock_send.assert_not_called()

    def test_json_array_body(self, client):
        response = client.post(ENDPOINT, json=[1, 2, 3])
        assert response.status_code == 400
        assert _field_names(response) == ["body"]

    def test_nan_branch_number_rejected(self, client):
        body = json.dumps(_make_body(branchNumber=float("nan")))
        with patch("app.routers.royal_post.send_royal_post") as mock_send:
            response = client.post(
                ENDPOINT,
                content=body.encode(),
                headers={"Content-Type": "application/json"},
            )

        assert response.status_code == 400
        assert response.json()["detail"]["fields"] == [
            {"field": "branchNumber", "message": "Must be text"}
        ]
        mock_send.assert_not_called()

    def test_missing_person_two_reports_four_fields(self, client):
        with patch("app.routers.royal_post.send_royal_post") as mock_send:
            response = client.post(ENDPOINT, json=_make_body(show_second_person=True))

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["error_code"] == "validation_failed"
        assert detail["detail"] == "Invalid form data"
        assert _field_names(response) == ["firstName2", "lastName2", "phone2", "dob2"]
        mock_send.assert_not_called()

    def test_future_date_of_birth(self, client):
        response = client.post(ENDPOINT, json=_make_body(dob1="2999-01-01"))

        assert response.status_code == 400
        fields = response.json()["detail"]["fields"]
        assert fields == [{"field": "dob1", "message": "Date of birth must not be in the future"}]

    def test_three_megabyte_photo_rejected_before_dispatch(self, client):
        body = _make_body(photo1=_make_data_url(size=3 * 1024 * 1024))
        with patch("app.routers.royal_post.send_royal_post") as mock_send:
            response = client.post(ENDPOINT, json=body)

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["error_code"] == "file_too_large"
        assert detail["fields"][0]["field"] == "photo1"
        mock_send.assert_not_called()

    def test_non_image_photo_rejected(self, client):
        body = _make_body(photo1=_make_data_url(content_type="application/pdf"))
        with patch("app.routers.royal_post.send_royal_post") as mock_send:
            response = client.post(ENDPOINT, json=body)

        assert response.status_code == 400
        assert _field_names(response) == ["photo1"]
        mock_send.assert_not_called()

    def test_validation_runs_before_photo_checks(self, client):
        body = _make_body(branchNumber="", photo1="garbage")
        response = client.post(ENDPOINT, json=body)

        assert response.status_code == 400
        assert _field_names(response) == ["branchNumber"]

    def test_strict_policy_from_environment(self, client):
        body = _make_body(firstName1="J0hn")
        with patch.dict(os.environ, {"INTAKE_VALIDATION_POLICY": "strict"}), \
             patch("app.routers.royal_post.send_royal_post") as mock_send:
            response = client.post(ENDPOINT, json=body)

        assert response.status_code == 400
        assert _field_names(response) == ["firstName1"]
        mock_send.assert_not_called()


# ===========================================================================
# 500 — dispatch failures
# ===========================================================================

class TestRoyalPostDispatchFailure:

    def test_dispatch_error_surfaces_provider_message(self, client):
        with patch("app.routers.royal_post.send_royal_post") as mock_send:
            mock_send.side_effect = DispatchError("Domain is not verified")
            response = client.post(ENDPOINT, json=_make_body())

        assert response.status_code == 500
        assert response.json()["detail"] == {
            "detail": "Domain is not verified",
            "error_code": "dispatch_failed",
        }
        assert mock_send.call_count == 1

    def test_unconfigured_resend_is_a_dispatch_failure(self, client):
        with patch.dict(os.environ, {"RESEND_API_KEY": ""}), \
             patch("app.services.mail_dispatcher.resend") as mock_resend:
            response = client.post(ENDPOINT, json=_make_body())

        assert response.status_code == 500
        assert response.json()["detail"]["error_code"] == "dispatch_failed"
        mock_resend.Emails.send.assert_not_called()

    def test_unexpected_error_is_opaque(self, client):
        with patch("app.routers.royal_post.send_royal_post") as mock_send:
            mock_send.side_effect = KeyError("secret internals")
            response = client.post(ENDPOINT, json=_make_body())

        assert response.status_code == 500
        assert response.json()["detail"] == {
            "detail": "Internal server error",
            "error_code": "internal_error",
        }
