"""
Unit tests for the in-memory repository adapter.

The in-memory adapter backs the unit suite and the "memory" backend, so it
must keep the same guarantees as the PostgreSQL adapter:
- One live code session per (event, email)
- Expiry and attempt limits enforced at verification time
- Exactly-once redirect token consumption
- One non-anonymous registration per (event, email)
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from src.adapters.repository import memory
from src.adapters.repository.memory import InMemoryRepository
from src.domain.codes import code_matches, hash_code
from src.domain.models import Event, RegistrationStatus
from src.domain.ports import TokenResult, TransferResult, VerifyResult


@pytest.fixture
def stored_code(repository: InMemoryRepository) -> str:
    """A live session for ana@example.com on event A holding code 123456."""
    repository.replace_session(
        "A", "ana@example.com", hash_code("123456", rounds=4), 600, {"first_name": "Ana"}, "tok-1"
    )
    return "123456"


class TestVerificationSessions:
    """Tests for code session storage and verification."""

    def test_verify_by_email(self, repository, stored_code) -> None:
        result, session = repository.verify_code("A", stored_code, 5, email="ana@example.com")

        assert result == VerifyResult.SUCCESS
        assert session.profile == {"first_name": "Ana"}

    def test_verify_by_session_token(self, repository, stored_code) -> None:
        result, session = repository.verify_code("A", stored_code, 5, session_token="tok-1")

        assert result == VerifyResult.SUCCESS
        assert session.email == "ana@example.com"

    def test_success_consumes_session(self, repository, stored_code) -> None:
        """A code works exactly once."""
        repository.verify_code("A", stored_code, 5, email="ana@example.com")

        result, _ = repository.verify_code("A", stored_code, 5, email="ana@example.com")

        assert result == VerifyResult.NOT_FOUND

    def test_session_scoped_to_event(self, repository, stored_code) -> None:
        result, _ = repository.verify_code("B", stored_code, 5, email="ana@example.com")

        assert result == VerifyResult.NOT_FOUND

    def test_replace_invalidates_previous_code(self, repository, stored_code) -> None:
        """Issuing again leaves only the newest code live."""
        repository.replace_session(
            "A", "ana@example.com", hash_code("654321", rounds=4), 600, {}, None
        )

        old, _ = repository.verify_code("A", stored_code, 5, email="ana@example.com")
        new, _ = repository.verify_code("A", "654321", 5, email="ana@example.com")

        assert old == VerifyResult.INVALID_CODE
        assert new == VerifyResult.SUCCESS

    def test_expired_session(self, repository, stored_code, clock) -> None:
        """At the TTL boundary the session is already expired."""
        clock.advance(600)

        result, _ = repository.verify_code("A", stored_code, 5, email="ana@example.com")

        assert result == VerifyResult.EXPIRED
        assert repository._sessions == {}

    def test_last_wrong_attempt_exhausts(self, repository, stored_code) -> None:
        """The max-th wrong attempt deletes the session; the right code no longer works."""
        results = [
            repository.verify_code("A", "000000", 3, email="ana@example.com")[0] for _ in range(3)
        ]

        assert results == [VerifyResult.INVALID_CODE, VerifyResult.INVALID_CODE, VerifyResult.EXHAUSTED]
        result, _ = repository.verify_code("A", stored_code, 3, email="ana@example.com")
        assert result == VerifyResult.NOT_FOUND

    def test_discard_session(self, repository, stored_code) -> None:
        assert repository.discard_session("A", session_token="tok-1") is True
        assert repository.discard_session("A", email="ana@example.com") is False

    def test_concurrent_guesses_never_exceed_limit(self, repository, stored_code) -> None:
        """Parallel wrong guesses are serialised against the attempt counter."""

        def guess(_: int) -> VerifyResult:
            return repository.verify_code("A", "999999", 5, email="ana@example.com")[0]

        with ThreadPoolExecutor(max_workers=10) as executor:
            results = list(executor.map(guess, range(10)))

        assert results.count(VerifyResult.INVALID_CODE) == 4
        assert results.count(VerifyResult.EXHAUSTED) == 1
        assert results.count(VerifyResult.NOT_FOUND) == 5

    def test_code_check_does_not_hold_repository_lock(self, repository, stored_code, monkeypatch) -> None:
        """Other operations proceed while a code hash is being checked."""
        seen = []

        def checking(code: str, code_hash: str | None) -> bool:
            with ThreadPoolExecutor(max_workers=1) as executor:
                seen.append(executor.submit(repository.get_event, "A").result(timeout=5))
            return code_matches(code, code_hash)

        monkeypatch.setattr(memory, "code_matches", checking)

        result, _ = repository.verify_code("A", stored_code, 5, email="ana@example.com")

        assert result == VerifyResult.SUCCESS
        assert seen == [None]

    def test_resend_during_check_invalidates_attempt(self, repository, stored_code, monkeypatch) -> None:
        """A code replaced while it was being checked no longer verifies."""

        def resend_then_check(code: str, code_hash: str | None) -> bool:
            repository.replace_session(
                "A", "ana@example.com", hash_code("654321", rounds=4), 600, {}, None
            )
            return code_matches(code, code_hash)

        monkeypatch.setattr(memory, "code_matches", resend_then_check)

        result, _ = repository.verify_code("A", stored_code, 5, email="ana@example.com")

        assert result == VerifyResult.INVALID_CODE
        assert ("A", "ana@example.com") in repository._sessions


class TestGrantsAndRedirectTokens:
    def test_grant_expires(self, repository, clock) -> None:
        repository.create_grant("g", "A", "ana@example.com", {"first_name": "Ana"}, 60)

        assert repository.find_grant("g")["email"] == "ana@example.com"
        clock.advance(60)
        assert repository.find_grant("g") is None

    def test_redirect_token_consumed_once(self, repository) -> None:
        repository.create_redirect_token("r", "A", "ana@example.com", {"email": "ana@example.com"}, 600)

        first, profile = repository.consume_redirect_token("r", "ana@example.com", "A")
        second, _ = repository.consume_redirect_token("r", "ana@example.com", "A")

        assert first == TokenResult.SUCCESS
        assert profile == {"email": "ana@example.com"}
        assert second == TokenResult.INVALID

    def test_redirect_token_expired(self, repository, clock) -> None:
        repository.create_redirect_token("r", "A", "ana@example.com", {}, 600)
        clock.advance(601)

        result, _ = repository.consume_redirect_token("r", "ana@example.com", "A")

        assert result == TokenResult.EXPIRED


class TestRegistrations:
    """Tests for registration storage."""

    def test_upsert_inserts_then_updates(self, repository) -> None:
        created, first = repository.upsert_registration(
            "A", "ana@example.com", {"first_name": "Ana", "last_name": "Diaz"}
        )
        updated, second = repository.upsert_registration("A", "ana@example.com", {"phone": "+1"})

        assert (first, second) == (False, True)
        assert updated.id == created.id
        assert updated.phone == "+1"
        assert updated.first_name == "Ana"
        assert created.language == "en"

    def test_returned_copies_are_detached(self, repository) -> None:
        registration, _ = repository.upsert_registration(
            "A", "ana@example.com", {"first_name": "Ana", "last_name": "Diaz", "form_data": {"x": 1}}
        )
        registration.form_data["x"] = 2

        assert repository.get_registration(registration.id).form_data == {"x": 1}

    def test_order_rows_do_not_block_upsert(self, repository) -> None:
        """Anonymous order rows are outside the (event, email) uniqueness."""
        repository.insert_order(
            [
                {
                    "event_id": "A",
                    "email": "ana@example.com",
                    "first_name": "Ana",
                    "last_name": "Diaz",
                    "order_id": "o-1",
                    "attendee_index": 0,
                }
            ]
        )

        _, was_updated = repository.upsert_registration(
            "A", "ana@example.com", {"first_name": "Ana", "last_name": "Diaz"}
        )

        assert was_updated is False
        assert repository.find_registration("A", email="ana@example.com").order_id is None

    def test_find_by_distributor_id(self, repository) -> None:
        repository.upsert_registration(
            "A", "ana@example.com", {"first_name": "Ana", "last_name": "Diaz", "distributor_id": "D1"}
        )

        assert repository.find_registration("A", distributor_id="D1").email == "ana@example.com"
        assert repository.find_registration("A", email="ANA@example.com") is not None

    def test_concurrent_upserts_create_one_row(self, repository) -> None:
        """Racing first submissions for one identity converge on one registration."""

        def submit(i: int) -> bool:
            return repository.upsert_registration(
                "A", "ana@example.com", {"first_name": f"Ana{i}", "last_name": "Diaz"}
            )[1]

        with ThreadPoolExecutor(max_workers=8) as executor:
            results = list(executor.map(submit, range(8)))

        assert results.count(False) == 1
        assert len(repository._registrations) == 1

    def test_transfer_conflict_and_not_found(self, repository) -> None:
        repository.create_event(Event(id="A", name="A"))
        repository.create_event(Event(id="B", name="B"))
        registration, _ = repository.upsert_registration(
            "A", "ana@example.com", {"first_name": "Ana", "last_name": "Diaz"}
        )
        repository.upsert_registration("B", "ana@example.com", {"first_name": "Ana", "last_name": "Diaz"})

        assert repository.transfer_registration(registration.id, "A", "B")[0] == TransferResult.CONFLICT
        assert repository.transfer_registration(registration.id, "B", "A")[0] == TransferResult.NOT_FOUND

    def test_check_in_then_transfer_resets_status(self, repository) -> None:
        registration, _ = repository.upsert_registration(
            "A", "ana@example.com", {"first_name": "Ana", "last_name": "Diaz", "status": "registered"}
        )
        repository.check_in(registration.id, "door")

        result, moved = repository.transfer_registration(registration.id, "A", "B")

        assert result == TransferResult.SUCCESS
        assert moved.status == RegistrationStatus.REGISTERED
        assert moved.checked_in_by is None

    def test_close_registration_keeps_first_timestamp(self, repository, clock) -> None:
        repository.create_event(Event(id="A", name="A"))
        first = repository.close_registration("A")
        clock.advance(10)

        assert repository.close_registration("A").registration_closed_at == first.registration_closed_at
        assert repository.close_registration("missing") is None
