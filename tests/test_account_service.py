import pytest

from tvbackend.core.errors import (
    AccountNotFoundError,
    AuthError,
    ConflictError,
    InvalidTokenError,
    NotFoundError,
)
from tvbackend.services import accounts as accounts_module


@pytest.fixture
def fixed_codes(monkeypatch):
    codes = iter(["111111", "222222", "333333", "444444"])
    monkeypatch.setattr(accounts_module, "generate_numeric_code", lambda length=6: next(codes))


@pytest.mark.asyncio
async def test_register_then_login(account_service, tokens):
    account = await account_service.register("alice", "pw1")
    result = await account_service.login("alice", "pw1")

    claims = tokens.verify(result.access_token)
    assert claims.subject_id == account.id
    assert claims.subject_username == "alice"
    assert result.expires_in == 3600
    assert result.expires_at == claims.expires_at
    assert result.account.last_login_at is not None


@pytest.mark.asyncio
async def test_register_never_stores_plaintext(account_service, store):
    await account_service.register("alice", "pw1")

    account = await store.find_by_username("alice")
    assert account.password_hash != "pw1"
    assert "pw1" not in account.password_hash


@pytest.mark.asyncio
async def test_register_duplicate(account_service):
    await account_service.register("alice", "pw1")

    with pytest.raises(ConflictError):
        await account_service.register("alice", "other")


@pytest.mark.asyncio
async def test_login_rejects_bad_credentials(account_service):
    await account_service.register("alice", "pw1")

    with pytest.raises(AuthError):
        await account_service.login("alice", "wrong")
    with pytest.raises(AuthError):
        await account_service.login("nobody", "pw1")


@pytest.mark.asyncio
async def test_forgot_password_dispatches_code(account_service, outbox, store):
    await account_service.register("alice", "pw1")

    code = await account_service.forgot_password("alice")

    assert len(code) == 6 and code.isdigit()
    assert outbox.sent == [("alice", code, "password_reset")]
    account = await store.find_by_username("alice")
    assert account.pending_token is not None
    assert account.pending_token != code


@pytest.mark.asyncio
async def test_forgot_password_unknown_user(account_service, outbox):
    with pytest.raises(NotFoundError):
        await account_service.forgot_password("nobody")
    assert outbox.sent == []


@pytest.mark.asyncio
async def test_only_latest_reset_code_matches(account_service, fixed_codes):
    await account_service.register("alice", "pw1")
    first = await account_service.forgot_password("alice")
    second = await account_service.forgot_password("alice")
    assert first != second

    with pytest.raises(InvalidTokenError):
        await account_service.reset_password("alice", first, "pw2")

    await account_service.reset_password("alice", second, "pw2")
    await account_service.login("alice", "pw2")


@pytest.mark.asyncio
async def test_reset_clears_pending_token(account_service, store):
    await account_service.register("alice", "pw1")
    code = await account_service.forgot_password("alice")

    await account_service.reset_password("alice", code, "pw2")

    assert (await store.find_by_username("alice")).pending_token is None
    with pytest.raises(InvalidTokenError):
        await account_service.reset_password("alice", code, "pw3")
    with pytest.raises(AuthError):
        await account_service.login("alice", "pw1")
    await account_service.login("alice", "pw2")


@pytest.mark.asyncio
async def test_reset_without_pending_token(account_service):
    await account_service.register("alice", "pw1")

    with pytest.raises(InvalidTokenError):
        await account_service.reset_password("alice", "123456", "pw2")


@pytest.mark.asyncio
async def test_reset_unknown_user(account_service):
    with pytest.raises(AccountNotFoundError):
        await account_service.reset_password("nobody", "123456", "pw2")


@pytest.mark.asyncio
async def test_pending_token_expires(account_service, clock):
    await account_service.register("alice", "pw1")
    code = await account_service.forgot_password("alice")

    clock.advance(1800)

    with pytest.raises(InvalidTokenError):
        await account_service.reset_password("alice", code, "pw2")


@pytest.mark.asyncio
async def test_verify_email_is_read_only(account_service, outbox, store):
    await account_service.register("alice", "pw1")
    code = await account_service.request_email_verification("alice")
    assert outbox.sent[-1] == ("alice", code, "email_verification")

    await account_service.verify_email("alice", code)
    await account_service.verify_email("alice", code)

    assert (await store.find_by_username("alice")).pending_token is not None
    with pytest.raises(InvalidTokenError):
        await account_service.verify_email("alice", "000000" if code != "000000" else "999999")


@pytest.mark.asyncio
async def test_change_password(account_service, store):
    await account_service.register("alice", "pw1")
    await account_service.forgot_password("alice")
    token = (await account_service.login("alice", "pw1")).access_token

    await account_service.change_password(token, "pw1", "pw2")

    assert (await store.find_by_username("alice")).pending_token is None
    with pytest.raises(AuthError):
        await account_service.login("alice", "pw1")
    await account_service.login("alice", "pw2")


@pytest.mark.asyncio
async def test_change_password_requires_current_password(account_service):
    await account_service.register("alice", "pw1")
    token = (await account_service.login("alice", "pw1")).access_token

    with pytest.raises(AuthError):
        await account_service.change_password(token, "wrong", "pw2")
    await account_service.login("alice", "pw1")


@pytest.mark.asyncio
async def test_change_password_rejects_expired_or_bad_token(account_service, clock):
    await account_service.register("alice", "pw1")
    token = (await account_service.login("alice", "pw1")).access_token

    with pytest.raises(AuthError):
        await account_service.change_password("not-a-token", "pw1", "pw2")

    clock.advance(3600)
    with pytest.raises(AuthError):
        await account_service.change_password(token, "pw1", "pw2")


@pytest.mark.asyncio
async def test_token_does_not_survive_account_recreation(account_service):
    await account_service.register("alice", "pw1")
    token = (await account_service.login("alice", "pw1")).access_token
    await account_service.delete_account("alice", "pw1")
    await account_service.register("alice", "pw1")

    with pytest.raises(AuthError):
        await account_service.authenticate(token)


@pytest.mark.asyncio
async def test_delete_account_scenario(account_service):
    await account_service.register("alice", "pw1")
    await account_service.login("alice", "pw1")

    with pytest.raises(AuthError):
        await account_service.login("alice", "wrong")
    with pytest.raises(AuthError):
        await account_service.delete_account("alice", "wrong")

    await account_service.delete_account("alice", "pw1")

    with pytest.raises(AuthError):
        await account_service.login("alice", "pw1")
    with pytest.raises(NotFoundError):
        await account_service.delete_account("alice", "pw1")
