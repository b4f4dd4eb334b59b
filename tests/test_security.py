"""Tests for token verification and actor resolution."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from bluecarbon.core.config import get_settings
from bluecarbon.core.exceptions import AuthenticationError, AuthorizationError
from bluecarbon.core.security import Actor, decode_token, require_admin, resolve_actor, Identity
from bluecarbon.models.profile import UserRole


def make_token(**claims):
    settings = get_settings()
    payload = {"sub": "user-1", "aud": settings.jwt_audience, "email": "user-1@example.org"}
    payload.update(claims)
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def test_decode_valid_token():
    identity = decode_token(make_token())
    assert identity.user_id == "user-1"
    assert identity.email == "user-1@example.org"


@pytest.mark.parametrize("claims", [
    {"exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
    {"aud": "someone-else"},
])
def test_expired_or_foreign_token_rejected(claims):
    with pytest.raises(AuthenticationError):
        decode_token(make_token(**claims))


def test_wrong_signature_rejected():
    token = jwt.encode({"sub": "user-1", "aud": "authenticated"}, "x" * 40, algorithm="HS256")
    with pytest.raises(AuthenticationError):
        decode_token(token)


def test_token_without_subject_rejected():
    with pytest.raises(AuthenticationError):
        decode_token(make_token(sub=""))


async def test_actor_role_comes_from_profile(session, ngo):
    actor = await resolve_actor(session, Identity(user_id=ngo.user_id))
    assert actor.role == UserRole.NGO
    assert not actor.is_admin


async def test_unregistered_caller_is_public(session):
    actor = await resolve_actor(session, Identity(user_id="stranger"))
    assert actor.role == UserRole.PUBLIC


def test_require_admin():
    require_admin(Actor(user_id="a", role=UserRole.ADMIN), "do things")
    with pytest.raises(AuthorizationError) as exc_info:
        require_admin(Actor(user_id="b", role=UserRole.NGO), "do things")
    assert exc_info.value.context == {"action": "do things"}
