import pytest

from tvbackend.core.errors import AuthError, MalformedTokenError
from tvbackend.core.security import TokenIssuer
from tvbackend.services.refresh import RefreshService

GRACE = 86400


@pytest.fixture
def refresher(tokens):
    return RefreshService(tokens, grace_seconds=GRACE)


def test_live_token_comes_back_unchanged(refresher, tokens):
    token = tokens.issue(7, "alice")

    result = refresher.refresh(token)

    assert result.access_token == token
    assert result.reissued is False
    assert result.expires_at == tokens.decode(token).expires_at


def test_expired_token_within_grace_is_reissued(refresher, tokens, clock):
    token = tokens.issue(7, "alice", ttl=60)
    clock.advance(60 + 3600)

    result = refresher.refresh(token)

    assert result.reissued is True
    assert result.access_token != token
    claims = tokens.verify(result.access_token)
    assert (claims.subject_id, claims.subject_username) == (7, "alice")
    assert claims.expires_at == int(clock().timestamp()) + 3600


def test_reissued_token_is_accepted_by_refresh(refresher, tokens, clock):
    token = tokens.issue(7, "alice", ttl=60)
    clock.advance(120)
    fresh = refresher.refresh(token).access_token

    again = refresher.refresh(fresh)

    assert again.access_token == fresh
    assert again.reissued is False


def test_grace_window_boundary(refresher, tokens, clock):
    token = tokens.issue(7, "alice", ttl=60)
    clock.advance(60 + GRACE)

    assert refresher.refresh(token).reissued is True

    clock.advance(1)
    with pytest.raises(AuthError):
        refresher.refresh(token)


def test_expired_beyond_grace_always_fails(refresher, tokens, clock):
    token = tokens.issue(7, "alice", ttl=60)
    clock.advance(60 + GRACE * 3)

    for _ in range(3):
        with pytest.raises(AuthError):
            refresher.refresh(token)


@pytest.mark.parametrize("garbage", ["", "not-a-jwt", "a.b.c"])
def test_malformed_tokens(refresher, garbage):
    with pytest.raises(MalformedTokenError):
        refresher.refresh(garbage)


def test_foreign_signature_is_malformed(refresher, clock):
    foreign = TokenIssuer("someone-elses-secret", clock=clock).issue(7, "alice")

    with pytest.raises(MalformedTokenError):
        refresher.refresh(foreign)


def test_custom_ttl_for_reissued_tokens(tokens, clock):
    refresher = RefreshService(tokens, grace_seconds=GRACE, ttl=300)
    token = tokens.issue(7, "alice", ttl=60)
    clock.advance(61)

    result = refresher.refresh(token)

    claims = tokens.decode(result.access_token)
    assert claims.expires_at - claims.issued_at == 300
