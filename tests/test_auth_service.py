"""Unit tests for auth/service.py -- AuthService pipelines.

Covers:
- register -> me -> logout -> me -> login round trip
- duplicate registration, sequential and concurrent (exactly one wins)
- validation failures leave the store untouched
- unknown email and wrong password are indistinguishable
- logout is idempotent and requires a credential
- orphaned sessions raise AccountNotFoundError
- storage failures surface as InternalError, plaintext never logged
"""

from __future__ import annotations

import logging
import threading

import pytest
from sqlalchemy import delete, func, select
from sqlalchemy.exc import OperationalError

from auth.errors import (
    AccountNotFoundError,
    DuplicateAccountError,
    InternalError,
    InvalidCredentialsError,
    InvalidSessionError,
    MissingCredentialError,
    ValidationError,
)
from auth.service import AuthService
from auth.store import accounts_table, create_auth_engine
from tests.helpers import FakeClock, build_service


def _account_rows(service: AuthService, email: str | None = None) -> int:
    query = select(func.count()).select_from(accounts_table)
    if email is not None:
        query = query.where(accounts_table.c.email == email)
    with service.accounts.engine.connect() as conn:
        return conn.execute(query).scalar()


class TestRoundTrip:
    def test_register_login_logout_cycle(self, service: AuthService) -> None:
        registered = service.register("a@x.com", "secret1", "Ann")
        s1 = registered.session.credential
        assert registered.account.email == "a@x.com"
        assert registered.account.first_name == "Ann"

        me = service.get_current_account(s1)
        assert me.id == registered.account.id
        assert me.first_name == "Ann"

        assert service.logout(s1) is True
        with pytest.raises(InvalidSessionError):
            service.get_current_account(s1)

        logged_in = service.login("a@x.com", "secret1")
        s2 = logged_in.session.credential
        assert s2 != s1
        assert service.get_current_account(s2).id == registered.account.id

    def test_register_stores_digest_not_plaintext(self, service: AuthService) -> None:
        result = service.register("a@x.com", "secret1", "Ann")
        stored = service.accounts.find_by_email("a@x.com")
        assert stored.password_digest != "secret1"
        assert service.hasher.verify("secret1", stored.password_digest)
        assert result.account.password_digest == stored.password_digest

    def test_optional_fields_kept(self, service: AuthService) -> None:
        result = service.register("a@x.com", "secret1", "Ann", last_name="Lee", phone="+91 98765 43210")
        assert result.account.last_name == "Lee"
        assert result.account.phone == "+91 98765 43210"

    def test_concurrent_sessions_for_one_account(self, service: AuthService) -> None:
        first = service.register("a@x.com", "secret1", "Ann").session.credential
        second = service.login("a@x.com", "secret1").session.credential
        service.logout(first)
        assert service.get_current_account(second).email == "a@x.com"


class TestDuplicates:
    def test_second_register_fails(self, service: AuthService) -> None:
        service.register("a@x.com", "secret1", "Ann")
        with pytest.raises(DuplicateAccountError):
            service.register("a@x.com", "another1", "Annie")
        assert _account_rows(service, "a@x.com") == 1

    def test_concurrent_registers_exactly_one_wins(self, tmp_path) -> None:
        """Two simultaneous registrations for one email: one succeeds, one is a duplicate.

        Uses a file-backed SQLite database so the two threads hold real,
        independent connections and the UNIQUE constraint arbitrates.
        """
        engine = create_auth_engine(f"sqlite:///{tmp_path / 'race.db'}")
        service = build_service(engine)
        barrier = threading.Barrier(2)
        outcomes: list[str] = []
        lock = threading.Lock()

        def attempt(first_name: str) -> None:
            barrier.wait()
            try:
                service.register("race@x.com", "secret1", first_name)
                outcome = "ok"
            except DuplicateAccountError:
                outcome = "duplicate"
            with lock:
                outcomes.append(outcome)

        threads = [threading.Thread(target=attempt, args=(name,)) for name in ("Ann", "Bob")]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        try:
            assert sorted(outcomes) == ["duplicate", "ok"]
            assert _account_rows(service, "race@x.com") == 1
        finally:
            engine.dispose()


class TestValidation:
    @pytest.mark.parametrize(
        "email,password,first_name",
        [
            ("", "secret1", "Ann"),
            (None, "secret1", "Ann"),
            ("a@x.com", "", "Ann"),
            ("a@x.com", None, "Ann"),
            ("a@x.com", "secret1", ""),
            ("a@x.com", "secret1", "   "),
            ("a@x.com", "12345", "Ann"),
            ("a@x.com", "x" * 73, "Ann"),
            ("not-an-email", "secret1", "Ann"),
            ("a@x", "secret1", "Ann"),
            ("a b@x.com", "secret1", "Ann"),
            ("a@x.com\n", "secret1", "Ann"),
            (" a@x.com", "secret1", "Ann"),
        ],
    )
    def test_register_rejects_before_any_write(self, service: AuthService, email, password, first_name) -> None:
        with pytest.raises(ValidationError):
            service.register(email, password, first_name)
        assert _account_rows(service) == 0

    def test_six_character_password_accepted(self, service: AuthService) -> None:
        service.register("a@x.com", "123456", "Ann")
        assert _account_rows(service) == 1

    def test_validation_message_does_not_echo_password(self, service: AuthService) -> None:
        with pytest.raises(ValidationError) as exc_info:
            service.register("a@x.com", "abc12", "Ann")
        assert "abc12" not in exc_info.value.message

    @pytest.mark.parametrize("email,password", [("", "secret1"), ("a@x.com", ""), (None, None)])
    def test_login_requires_both_fields(self, service: AuthService, email, password) -> None:
        with pytest.raises(ValidationError):
            service.login(email, password)


class TestLoginFailures:
    def test_unknown_email_and_wrong_password_look_identical(self, service: AuthService) -> None:
        service.register("a@x.com", "secret1", "Ann")
        with pytest.raises(InvalidCredentialsError) as unknown:
            service.login("nobody@x.com", "secret1")
        with pytest.raises(InvalidCredentialsError) as wrong:
            service.login("a@x.com", "wrong-password")
        assert type(unknown.value) is type(wrong.value)
        assert unknown.value.code == wrong.value.code
        assert unknown.value.message == wrong.value.message

    def test_email_is_case_sensitive(self, service: AuthService) -> None:
        service.register("a@x.com", "secret1", "Ann")
        with pytest.raises(InvalidCredentialsError):
            service.login("A@X.COM", "secret1")


class TestLogout:
    def test_missing_credential(self, service: AuthService) -> None:
        with pytest.raises(MissingCredentialError):
            service.logout("")
        with pytest.raises(MissingCredentialError):
            service.logout(None)

    def test_unknown_credential_is_noop_success(self, service: AuthService) -> None:
        assert service.logout("never-issued") is False

    def test_double_logout(self, service: AuthService) -> None:
        credential = service.register("a@x.com", "secret1", "Ann").session.credential
        assert service.logout(credential) is True
        assert service.logout(credential) is False


class TestCurrentAccount:
    @pytest.mark.parametrize("credential", [None, ""])
    def test_missing_credential_is_invalid_session(self, service: AuthService, credential) -> None:
        with pytest.raises(InvalidSessionError):
            service.get_current_account(credential)

    def test_expired_session(self, service: AuthService, clock: FakeClock) -> None:
        credential = service.register("a@x.com", "secret1", "Ann").session.credential
        clock.advance(days=7, seconds=1)
        with pytest.raises(InvalidSessionError):
            service.get_current_account(credential)

    def test_orphaned_session(self, service: AuthService) -> None:
        result = service.register("a@x.com", "secret1", "Ann")
        with service.accounts.engine.begin() as conn:
            conn.execute(delete(accounts_table).where(accounts_table.c.id == result.account.id))
        with pytest.raises(AccountNotFoundError):
            service.get_current_account(result.session.credential)


class TestInternalErrors:
    def test_storage_failure_becomes_internal_error(self, service: AuthService, monkeypatch, caplog) -> None:
        def broken(email):
            raise OperationalError("SELECT * FROM accounts", {}, Exception("disk I/O error"))

        monkeypatch.setattr(service.accounts, "find_by_email", broken)
        with caplog.at_level(logging.ERROR, logger="safeconnect.auth"):
            with pytest.raises(InternalError) as exc_info:
                service.login("a@x.com", "hunter22")
        assert "disk I/O" not in exc_info.value.message
        assert "SELECT" not in exc_info.value.message
        assert any("login failed" in r.getMessage() for r in caplog.records)

    def test_failed_session_write_rolls_back_account(self, service: AuthService, monkeypatch) -> None:
        def broken(account_id, conn=None):
            raise OperationalError("INSERT INTO sessions", {}, Exception("disk I/O error"))

        monkeypatch.setattr(service.sessions, "issue", broken)
        with pytest.raises(InternalError):
            service.register("a@x.com", "secret1", "Ann")
        assert _account_rows(service) == 0

        monkeypatch.undo()
        result = service.register("a@x.com", "secret1", "Ann")
        assert service.get_current_account(result.session.credential).email == "a@x.com"

    def test_plaintext_password_never_logged(self, service: AuthService, caplog) -> None:
        with caplog.at_level(logging.DEBUG):
            result = service.register("a@x.com", "hunter22", "Ann")
            service.login("a@x.com", "hunter22")
            with pytest.raises(InvalidCredentialsError):
                service.login("a@x.com", "hunter23")
            service.get_current_account(result.session.credential)
            service.logout(result.session.credential)
        text = caplog.text
        assert "hunter22" not in text
        assert "hunter23" not in text
        assert result.session.credential not in text


def test_purge_expired_sessions(service: AuthService, clock: FakeClock) -> None:
    service.register("a@x.com", "secret1", "Ann")
    clock.advance(days=8)
    live = service.login("a@x.com", "secret1").session.credential
    assert service.purge_expired_sessions() == 1
    assert service.get_current_account(live).email == "a@x.com"
