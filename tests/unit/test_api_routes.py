"""
Unit tests for API v1 routes.

Routes run against the in-memory repository through dependency overrides;
error mapping is also checked with mocked domain services.
"""

from base64 import b64encode
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.adapters.directory import NullIdentityDirectory
from src.api.dependencies import (
    Repositories,
    get_email_sender,
    get_engine,
    get_identity_directory,
    get_repositories,
)
from src.api.v1 import router
from src.config.settings import Settings, get_settings
from src.domain.exceptions import RegistrationClosed, ValidationError
from src.domain.models import RegistrationMode
from src.domain.registration import ReconciliationEngine


def basic_auth_header(username: str, password: str) -> dict:
    """Create HTTP BASIC AUTH header for testing."""
    encoded = b64encode(f"{username}:{password}".encode()).decode()
    return {"Authorization": f"Basic {encoded}"}


def bearer(grant_token: str) -> dict:
    return {"Authorization": f"Bearer {grant_token}"}


ADMIN = basic_auth_header("admin", "s3cret")


@pytest.fixture
def app(services) -> FastAPI:
    """Test application wired to the in-memory services."""
    test_app = FastAPI()
    test_app.include_router(router, prefix="/v1")

    repositories = Repositories.in_memory(services.repository)
    settings = Settings(bcrypt_cost=4, admin_username="admin", admin_password="s3cret")
    test_app.dependency_overrides[get_repositories] = lambda: repositories
    test_app.dependency_overrides[get_email_sender] = lambda: services.sender
    test_app.dependency_overrides[get_identity_directory] = lambda: NullIdentityDirectory()
    test_app.dependency_overrides[get_settings] = lambda: settings
    return test_app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Create test client for the application."""
    return TestClient(app)


@pytest.fixture
def gala(services) -> str:
    """qualified_verified event with one qualified distributor."""
    services.add_event("gala", RegistrationMode.QUALIFIED_VERIFIED)
    services.add_qualifier(
        "gala", "maria.lopez@example.com", first_name="María", last_name="López", distributor_id="UX100920"
    )
    return "gala"


def verify(client: TestClient, services, event_id: str, email: str) -> str:
    """Run issue + validate over HTTP and return the grant token."""
    client.post(f"/v1/events/{event_id}/otp", json={"email": email})
    response = client.post(
        f"/v1/events/{event_id}/otp/validate",
        json={"email": email, "code": services.sender.last_code(email)},
    )
    assert response.status_code == 200
    return response.json()["grant_token"]


class TestQualificationEndpoint:
    """Tests for POST /v1/events/{event_id}/qualification."""

    def test_distributor_id_returns_masked_profile(self, client: TestClient, gala: str) -> None:
        response = client.post(f"/v1/events/{gala}/qualification", json={"distributor_id": "UX100920"})

        assert response.status_code == 200
        data = response.json()
        assert data["qualified"] is True
        assert data["email_masked"] is True
        assert data["email"] != "maria.lopez@example.com"
        assert data["first_name"] == "María"

    def test_own_email_with_foreign_distributor_id_stays_masked(
        self, client: TestClient, services, gala: str
    ) -> None:
        """Pairing any email with someone's distributor id never reveals their address."""
        payload = {"email": "someone.else@example.org", "distributor_id": "UX100920"}

        qualification = client.post(f"/v1/events/{gala}/qualification", json=payload).json()
        issued = client.post(f"/v1/events/{gala}/otp", json=payload).json()

        assert qualification["email_masked"] is True
        assert "maria.lopez@example.com" not in str(qualification)
        assert issued["email_masked"] is True
        assert issued["session_token"]
        assert "maria.lopez@example.com" not in str(issued)
        assert services.sender.sent[-1][0] == "maria.lopez@example.com"

    def test_not_qualified_is_terminal_403(self, client: TestClient, gala: str) -> None:
        response = client.post(f"/v1/events/{gala}/qualification", json={"email": "who@example.com"})

        assert response.status_code == 403
        detail = response.json()["detail"]
        assert detail["code"] == "not_qualified"
        assert detail["terminal"] is True

    def test_unknown_event_returns_404(self, client: TestClient) -> None:
        response = client.post("/v1/events/missing/qualification", json={"email": "a@example.com"})

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "event_not_found"

    def test_malformed_email_returns_422(self, client: TestClient, gala: str) -> None:
        response = client.post(f"/v1/events/{gala}/qualification", json={"email": "not-an-email"})

        assert response.status_code == 422


class TestCodeEndpoints:
    """Tests for issuing, validating and discarding one-time codes."""

    def test_issue_by_distributor_id_returns_session_token(
        self, client: TestClient, services, gala: str
    ) -> None:
        """The code goes to the real address; the response only shows the masked one."""
        response = client.post(f"/v1/events/{gala}/otp", json={"distributor_id": "UX100920"})

        assert response.status_code == 201
        data = response.json()
        assert data["message"] == "Verification code sent"
        assert data["email_masked"] is True
        assert data["session_token"]
        assert data["expires_in_seconds"] == 600
        assert services.sender.sent[-1][0] == "maria.lopez@example.com"

    def test_validate_with_session_token(self, client: TestClient, services, gala: str) -> None:
        issued = client.post(f"/v1/events/{gala}/otp", json={"distributor_id": "UX100920"}).json()

        response = client.post(
            f"/v1/events/{gala}/otp/validate",
            json={"code": services.sender.last_code(), "session_token": issued["session_token"]},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["unicity_id"] == "UX100920"
        assert data["email"] == "maria.lopez@example.com"
        assert data["grant_token"]
        assert data["expires_in_seconds"] == 1800

    def test_wrong_code_returns_401(self, client: TestClient, services) -> None:
        services.add_event("open")
        client.post("/v1/events/open/otp", json={"email": "ana@example.com"})
        code = services.sender.last_code()
        wrong = "000000" if code != "000000" else "111111"

        response = client.post(
            "/v1/events/open/otp/validate", json={"email": "ana@example.com", "code": wrong}
        )

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "invalid_code"

    def test_non_numeric_code_rejected(self, client: TestClient, services) -> None:
        services.add_event("open")

        response = client.post(
            "/v1/events/open/otp/validate", json={"email": "ana@example.com", "code": "abcdef"}
        )

        assert response.status_code == 422

    def test_unqualified_identity_gets_no_code(self, client: TestClient, services, gala: str) -> None:
        response = client.post(f"/v1/events/{gala}/otp", json={"email": "who@example.com"})

        assert response.status_code == 403
        assert services.sender.sent == []

    def test_discard_code(self, client: TestClient, services) -> None:
        """After discarding, the code no longer validates."""
        services.add_event("open")
        client.post("/v1/events/open/otp", json={"email": "ana@example.com"})
        code = services.sender.last_code()

        response = client.delete("/v1/events/open/otp", params={"email": "ana@example.com"})

        assert response.status_code == 204
        response = client.post(
            "/v1/events/open/otp/validate", json={"email": "ana@example.com", "code": code}
        )
        assert response.status_code == 401


class TestSessionEndpoint:
    def test_resume_with_grant(self, client: TestClient, services) -> None:
        services.add_event("open")
        grant = verify(client, services, "open", "ana@example.com")

        response = client.get("/v1/events/open/session", headers=bearer(grant))

        assert response.status_code == 200
        assert response.json()["email"] == "ana@example.com"

    def test_resume_without_grant_returns_403(self, client: TestClient, services) -> None:
        services.add_event("open")

        response = client.get("/v1/events/open/session")

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "verification_required"

    def test_grant_is_event_scoped(self, client: TestClient, services) -> None:
        services.add_event("one")
        services.add_event("two")
        grant = verify(client, services, "one", "ana@example.com")

        response = client.get("/v1/events/two/session", headers=bearer(grant))

        assert response.status_code == 403


class TestRedirectTokenEndpoints:
    """Tests for minting and consuming redirect tokens."""

    def test_mint_and_consume_once(self, client: TestClient, services) -> None:
        services.add_event("open")
        grant = verify(client, services, "open", "ana@example.com")

        minted = client.post(
            "/v1/events/open/redirect-tokens", json={"email": "ana@example.com"}, headers=bearer(grant)
        )
        assert minted.status_code == 201
        token = minted.json()["token"]

        first = client.post(
            "/v1/events/open/redirect-tokens/consume", json={"token": token, "email": "ana@example.com"}
        )
        second = client.post(
            "/v1/events/open/redirect-tokens/consume", json={"token": token, "email": "ana@example.com"}
        )

        assert first.status_code == 200
        assert first.json()["grant_token"]
        assert second.status_code == 401
        assert second.json()["detail"]["code"] == "invalid_token"

    def test_mint_requires_verification(self, client: TestClient, services) -> None:
        services.add_event("open")

        response = client.post("/v1/events/open/redirect-tokens", json={"email": "ana@example.com"})

        assert response.status_code == 403


class TestSubmitRegistration:
    """Tests for POST /v1/events/{event_id}/registrations."""

    def test_create_then_update(self, client: TestClient, services, gala: str) -> None:
        """First submission is 201, the next one updates the same row with 200."""
        grant = verify(client, services, gala, "maria.lopez@example.com")

        created = client.post(
            f"/v1/events/{gala}/registrations", json={"fields": {"phone": "+1"}}, headers=bearer(grant)
        )
        updated = client.post(
            f"/v1/events/{gala}/registrations", json={"fields": {"phone": "+2"}}, headers=bearer(grant)
        )

        assert created.status_code == 201
        assert created.json()["registrations"][0]["status"] == "registered"
        assert created.json()["registrations"][0]["distributor_id"] == "UX100920"
        assert updated.status_code == 200
        assert updated.json()["was_updated"] is True
        assert updated.json()["registrations"][0]["id"] == created.json()["registrations"][0]["id"]
        assert updated.json()["registrations"][0]["phone"] == "+2"

    def test_existing_registration_endpoint(self, client: TestClient, services, gala: str) -> None:
        grant = verify(client, services, gala, "maria.lopez@example.com")

        before = client.get(f"/v1/events/{gala}/registrations/existing", headers=bearer(grant))
        client.post(f"/v1/events/{gala}/registrations", json={"fields": {}}, headers=bearer(grant))
        after = client.get(f"/v1/events/{gala}/registrations/existing", headers=bearer(grant))

        assert before.json() == {"registration": None}
        assert after.json()["registration"]["email"] == "maria.lopez@example.com"

    def test_unverified_submission_returns_403(self, client: TestClient, services) -> None:
        services.add_event("open")

        response = client.post(
            "/v1/events/open/registrations",
            json={"fields": {"first_name": "Ana", "last_name": "Diaz", "email": "ana@example.com"}},
        )

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "verification_required"
        assert response.json()["detail"]["terminal"] is False

    def test_missing_fields_listed(self, client: TestClient, services) -> None:
        services.add_event("open", required_fields=("shirt_size",))
        grant = verify(client, services, "open", "ana@example.com")

        response = client.post(
            "/v1/events/open/registrations", json={"fields": {"first_name": "Ana"}}, headers=bearer(grant)
        )

        assert response.status_code == 422
        assert response.json()["detail"]["missing_fields"] == ["last_name", "shirt_size"]

    def test_anonymous_order(self, client: TestClient, services) -> None:
        """Primary plus two attendees creates three rows and sends no code."""
        services.add_event("expo", RegistrationMode.OPEN_ANONYMOUS)

        response = client.post(
            "/v1/events/expo/registrations",
            json={
                "fields": {"first_name": "Ana", "last_name": "Diaz", "email": "ana@example.com"},
                "attendees": [
                    {"first_name": "Luis", "last_name": "Diaz", "email": "luis@example.com"},
                    {"first_name": "Eva", "last_name": "Diaz", "email": "eva@example.com"},
                ],
            },
        )

        assert response.status_code == 201
        rows = response.json()["registrations"]
        assert [r["attendee_index"] for r in rows] == [0, 1, 2]
        assert len({r["order_id"] for r in rows}) == 1
        assert services.sender.sent == []

    def test_closed_event_returns_terminal_409(self, client: TestClient, services, clock) -> None:
        services.add_event("expo", RegistrationMode.OPEN_ANONYMOUS, registration_closed_at=clock())

        response = client.post(
            "/v1/events/expo/registrations",
            json={"fields": {"first_name": "Ana", "last_name": "Diaz", "email": "ana@example.com"}},
        )

        assert response.status_code == 409
        assert response.json()["detail"] == {
            "code": "registration_closed",
            "message": "Registration is closed for this event",
            "terminal": True,
        }


class TestErrorMappingWithMocks:
    """Domain errors raised by a mocked engine map onto HTTP responses."""

    @pytest.mark.parametrize(
        ("error", "status_code"),
        [
            (RegistrationClosed(), 409),
            (ValidationError(["email"]), 422),
        ],
    )
    def test_engine_errors(self, app: FastAPI, error, status_code: int) -> None:
        mock_engine = MagicMock(spec=ReconciliationEngine)
        mock_engine.submit.side_effect = error
        app.dependency_overrides[get_engine] = lambda: mock_engine
        client = TestClient(app)

        response = client.post("/v1/events/any/registrations", json={"fields": {}})

        assert response.status_code == status_code
        assert response.json()["detail"]["code"] == error.code
        mock_engine.submit.assert_called_once()


class TestAdminEndpoints:
    """Tests for operator endpoints under /v1/admin."""

    def test_requires_basic_auth(self, client: TestClient) -> None:
        response = client.post("/v1/admin/events", json={"name": "Gala"})

        assert response.status_code == 401

    def test_rejects_wrong_password(self, client: TestClient) -> None:
        response = client.post(
            "/v1/admin/events", json={"name": "Gala"}, headers=basic_auth_header("admin", "nope")
        )

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Basic"

    def test_create_event_and_import_qualifiers(self, client: TestClient, services) -> None:
        created = client.post(
            "/v1/admin/events",
            json={"id": "gala", "name": "Gala", "registration_mode": "qualified_verified"},
            headers=ADMIN,
        )
        imported = client.post(
            "/v1/admin/events/gala/qualifiers",
            json={"qualifiers": [{"first_name": "Ana", "last_name": "Diaz", "email": "ANA@example.com"}]},
            headers=ADMIN,
        )

        assert created.status_code == 201
        assert created.json()["requires_qualification"] is True
        assert imported.status_code == 201
        assert imported.json() == {"imported": 1}
        assert services.repository.find_qualifier_by_email("gala", "ana@example.com") is not None

    def test_close_registration(self, client: TestClient, services) -> None:
        services.add_event("gala")

        response = client.post("/v1/admin/events/gala/close", headers=ADMIN)

        assert response.status_code == 200
        assert response.json()["registration_closed_at"] is not None

    def test_check_in_defaults_to_operator(self, client: TestClient, services, repository) -> None:
        services.add_event("gala")
        registration, _ = repository.upsert_registration(
            "gala", "ana@example.com", {"first_name": "Ana", "last_name": "Diaz"}
        )

        response = client.post(f"/v1/admin/registrations/{registration.id}/check-in", headers=ADMIN)

        assert response.status_code == 200
        assert response.json()["status"] == "checked_in"
        assert response.json()["checked_in_by"] == "admin"

    def test_transfer_and_cancel(self, client: TestClient, services, repository) -> None:
        services.add_event("a")
        services.add_event("b")
        registration, _ = repository.upsert_registration(
            "a", "ana@example.com", {"first_name": "Ana", "last_name": "Diaz"}
        )

        moved = client.post(
            f"/v1/admin/registrations/{registration.id}/transfer",
            json={"target_event_id": "b"},
            headers=ADMIN,
        )
        conflict = client.post(
            f"/v1/admin/registrations/{registration.id}/transfer",
            json={"target_event_id": "b"},
            headers=ADMIN,
        )
        cancelled = client.delete(f"/v1/admin/registrations/{registration.id}", headers=ADMIN)
        missing = client.delete(f"/v1/admin/registrations/{registration.id}", headers=ADMIN)

        assert moved.status_code == 200
        assert moved.json()["event_id"] == "b"
        assert conflict.status_code == 409
        assert cancelled.status_code == 204
        assert missing.status_code == 404
