"""Tests for the access gateway login state machine."""

import pytest

from camrelay.services.gateway import (
    MAX_PASSWORD_LENGTH,
    MAX_USERNAME_LENGTH,
    AccessGateway,
    AuthenticationError,
    AuthorizationError,
    Credential,
    LoginValidationError,
    RateLimitedError,
    load_credentials,
    validate_login_input,
)
from tests.conftest import ADMIN_PASSWORD, USER_PASSWORD

ORIGIN = "203.0.113.5"


def _audit_lines(gateway: AccessGateway) -> list[str]:
    path = gateway.audit.store.path
    if not path.exists():
        return []
    return path.read_text(encoding="utf-8").splitlines()


class TestValidateLoginInput:
    """Input checks performed before anything is recorded."""

    @pytest.mark.parametrize(
        ("username", "password"),
        [
            ("", "secret"),
            ("admin", ""),
            (None, "secret"),
            ("admin", 123),
            ("a" * (MAX_USERNAME_LENGTH + 1), "secret"),
            ("admin", "p" * (MAX_PASSWORD_LENGTH + 1)),
            ("admin", "x\ud800"),
            ("\udc80", "secret"),
        ],
    )
    def test_rejects(self, username, password) -> None:
        with pytest.raises(LoginValidationError):
            validate_login_input(username, password)

    def test_accepts_bounds(self) -> None:
        username = "a" * MAX_USERNAME_LENGTH
        password = "p" * MAX_PASSWORD_LENGTH
        assert validate_login_input(username, password) == (username, password)


def test_credentials_loaded_from_settings() -> None:
    credentials = load_credentials()
    assert credentials == (
        Credential("admin", ADMIN_PASSWORD, "admin"),
        Credential("user", USER_PASSWORD, "user"),
    )


@pytest.mark.asyncio
async def test_successful_login_issues_session(gateway: AccessGateway) -> None:
    session = await gateway.login("user", USER_PASSWORD, ORIGIN)
    await gateway.audit.drain()

    assert session.username == "user"
    assert session.role == "user"
    assert gateway.authenticate(session.token) == session
    lines = _audit_lines(gateway)
    assert len(lines) == 1
    assert "Success: true" in lines[0]
    assert "Password" not in lines[0]


@pytest.mark.asyncio
async def test_invalid_input_records_nothing(gateway: AccessGateway, mocker) -> None:
    submit = mocker.spy(gateway.audit, "submit")

    with pytest.raises(LoginValidationError):
        await gateway.login("", "whatever", ORIGIN)

    submit.assert_not_called()
    assert gateway.limiter.failures(ORIGIN) == 0


@pytest.mark.asyncio
async def test_wrong_password_is_audited_and_counted(gateway: AccessGateway) -> None:
    with pytest.raises(AuthenticationError):
        await gateway.login("admin", "wrong", ORIGIN)
    await gateway.audit.drain()

    assert gateway.limiter.failures(ORIGIN) == 1
    (line,) = _audit_lines(gateway)
    assert "Success: false" in line
    assert "Reason: invalid_credentials" in line
    assert line.endswith("Password: admin:wrong")


@pytest.mark.asyncio
async def test_identity_and_secret_must_both_match(gateway: AccessGateway) -> None:
    with pytest.raises(AuthenticationError):
        await gateway.login("user", ADMIN_PASSWORD, ORIGIN)
    with pytest.raises(AuthenticationError):
        await gateway.login("Admin", ADMIN_PASSWORD, ORIGIN)


@pytest.mark.asyncio
async def test_brute_force_scenario(gateway: AccessGateway) -> None:
    """Five wrong guesses block the origin even for the right password."""
    for _ in range(5):
        with pytest.raises(AuthenticationError):
            await gateway.login("admin", "wrong", ORIGIN)
    assert gateway.limiter.is_blocked(ORIGIN)

    with pytest.raises(RateLimitedError) as exc_info:
        await gateway.login("admin", ADMIN_PASSWORD, ORIGIN)
    await gateway.audit.drain()

    assert exc_info.value.retry_after > 0
    # The blocked attempt is not counted again.
    assert gateway.limiter.failures(ORIGIN) == 5
    lines = _audit_lines(gateway)
    assert len(lines) == 6
    assert all("Success: false" in line for line in lines)
    assert sum("Reason: invalid_credentials" in line for line in lines) == 5
    assert sum("Reason: rate_limited" in line for line in lines) == 1


@pytest.mark.asyncio
async def test_rate_limited_attempt_skips_credential_check(
    gateway: AccessGateway, mocker
) -> None:
    for _ in range(5):
        gateway.limiter.record(ORIGIN, success=False)
    match = mocker.spy(gateway, "_match")

    with pytest.raises(RateLimitedError):
        await gateway.login("admin", ADMIN_PASSWORD, ORIGIN)

    match.assert_not_called()
    assert len(gateway.sessions) == 0


@pytest.mark.asyncio
async def test_success_clears_failed_history(gateway: AccessGateway) -> None:
    for _ in range(4):
        with pytest.raises(AuthenticationError):
            await gateway.login("admin", "wrong", ORIGIN)

    await gateway.login("admin", ADMIN_PASSWORD, ORIGIN)

    assert gateway.limiter.failures(ORIGIN) == 0
    assert not gateway.limiter.is_blocked(ORIGIN)


@pytest.mark.asyncio
async def test_block_lifts_after_window(gateway: AccessGateway, clock) -> None:
    for _ in range(5):
        with pytest.raises(AuthenticationError):
            await gateway.login("admin", "wrong", ORIGIN)

    clock.advance(15 * 60 + 1)

    session = await gateway.login("admin", ADMIN_PASSWORD, ORIGIN)
    assert session.is_admin


@pytest.mark.asyncio
async def test_every_validated_attempt_yields_one_audit_entry(gateway: AccessGateway) -> None:
    attempts = [
        ("admin", "nope"),
        ("user", USER_PASSWORD),
        ("ghost", "boo"),
        ("admin", ADMIN_PASSWORD),
    ]
    for username, password in attempts:
        try:
            await gateway.login(username, password, ORIGIN)
        except AuthenticationError:
            pass
    await gateway.audit.drain()

    lines = _audit_lines(gateway)
    assert len(lines) == len(attempts)
    assert sum("Success: true" in line for line in lines) == 2
    assert all(("Password:" in line) == ("Success: false" in line) for line in lines)


@pytest.mark.asyncio
async def test_logout_and_expiry_end_sessions(gateway: AccessGateway, clock) -> None:
    first = await gateway.login("user", USER_PASSWORD, ORIGIN)
    second = await gateway.login("user", USER_PASSWORD, ORIGIN)

    assert gateway.logout(first.token) is True
    with pytest.raises(AuthenticationError):
        gateway.authenticate(first.token)

    clock.advance(24 * 60 * 60)
    with pytest.raises(AuthenticationError):
        gateway.authenticate(second.token)


def test_authenticate_without_token(gateway: AccessGateway) -> None:
    with pytest.raises(AuthenticationError):
        gateway.authenticate(None)
    assert gateway.logout(None) is False


@pytest.mark.asyncio
async def test_require_admin(gateway: AccessGateway) -> None:
    admin = await gateway.login("admin", ADMIN_PASSWORD, ORIGIN)
    user = await gateway.login("user", USER_PASSWORD, "198.51.100.2")

    assert gateway.require_admin(admin) is admin
    with pytest.raises(AuthorizationError):
        gateway.require_admin(user)


@pytest.mark.asyncio
async def test_unencodable_password_is_rejected_before_matching(
    gateway: AccessGateway, mocker
) -> None:
    submit = mocker.spy(gateway.audit, "submit")
    match = mocker.spy(gateway, "_match")

    with pytest.raises(LoginValidationError):
        await gateway.login("admin", "x\ud800", ORIGIN)

    match.assert_not_called()
    submit.assert_not_called()
    assert gateway.limiter.failures(ORIGIN) == 0


@pytest.mark.asyncio
async def test_blocked_attempts_are_not_geolocated(gateway: AccessGateway, mocker) -> None:
    locate = mocker.spy(gateway.audit.locator, "locate")
    for _ in range(5):
        with pytest.raises(AuthenticationError):
            await gateway.login("admin", "wrong", ORIGIN)

    for _ in range(3):
        with pytest.raises(RateLimitedError):
            await gateway.login("admin", "wrong", ORIGIN)
    await gateway.audit.drain()

    assert locate.call_count == 5
    assert len(_audit_lines(gateway)) == 8
