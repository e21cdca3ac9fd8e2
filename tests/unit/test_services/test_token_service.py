import jwt
import pytest
from pydantic import ValidationError
from sqlalchemy.orm import Session

from homekeeper.core.exception import (
    AuthenticationException,
    BadRequestException,
    NotAcceptableException,
    SessionResetException,
)
from homekeeper.repositories.userRepository import UserRepository
from homekeeper.services.token_service import SessionTokenManager, TokenSettings


def claims(manager: SessionTokenManager, token: str) -> dict:
    return jwt.decode(token, manager.config.secret_key, algorithms=[manager.config.algorithm])


@pytest.mark.unit
class TestTokenSettings:

    def test_refresh_must_outlive_access(self):
        with pytest.raises(ValidationError):
            TokenSettings(secret_key="s" * 32, access_ttl_ms=1000, refresh_ttl_ms=1000)

    def test_from_settings(self):
        from homekeeper.config import settings

        config = TokenSettings.from_settings(settings)

        assert config.access_ttl_ms == settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60_000
        assert config.refresh_ttl_ms > config.access_ttl_ms


@pytest.mark.unit
class TestIssue:

    def test_pair_shares_subject(self, token_manager, owner, clock):
        pair = token_manager.issue(owner)

        access = claims(token_manager, pair.access_token)
        refresh = claims(token_manager, pair.refresh_token)
        assert access["id"] == refresh["id"] == str(owner.id)
        assert access["type"] == "user"
        assert refresh["type"] == "refresh"

    def test_only_access_token_carries_email(self, token_manager, owner):
        pair = token_manager.issue(owner)

        assert claims(token_manager, pair.access_token)["email"] == "owner@example.com"
        assert "email" not in claims(token_manager, pair.refresh_token)

    def test_access_expires_before_refresh(self, token_manager, token_settings, owner, clock):
        pair = token_manager.issue(owner)

        access = claims(token_manager, pair.access_token)
        refresh = claims(token_manager, pair.refresh_token)
        assert access["expiration"] == clock.now + token_settings.access_ttl_ms
        assert refresh["expiration"] == clock.now + token_settings.refresh_ttl_ms
        assert access["expiration"] < refresh["expiration"]


@pytest.mark.unit
class TestVerify:

    def test_valid_access_token(self, token_manager, db_session: Session, owner):
        pair = token_manager.issue(owner)

        user = token_manager.verify(pair.access_token, UserRepository(db_session))

        assert user.id == owner.id

    def test_valid_until_expiration_instant(self, token_manager, token_settings, db_session: Session, owner, clock):
        pair = token_manager.issue(owner)
        users = UserRepository(db_session)

        clock.advance(token_settings.access_ttl_ms)
        assert token_manager.verify(pair.access_token, users).id == owner.id

        clock.advance(1)
        with pytest.raises(AuthenticationException) as exc_info:
            token_manager.verify(pair.access_token, users)
        assert exc_info.value.reason == "expired"

    def test_bad_signature(self, token_manager, token_settings, db_session: Session, owner, clock):
        forger = SessionTokenManager(
            token_settings.model_copy(update={"secret_key": "another-secret-key-of-decent-length"}),
            clock=clock,
        )
        pair = forger.issue(owner)

        with pytest.raises(AuthenticationException) as exc_info:
            token_manager.verify(pair.access_token, UserRepository(db_session))
        assert exc_info.value.reason == "invalid signature"

    def test_garbage_token(self, token_manager, db_session: Session):
        with pytest.raises(AuthenticationException) as exc_info:
            token_manager.verify("not-a-jwt", UserRepository(db_session))
        assert exc_info.value.reason == "invalid signature"

    def test_empty_payload(self, token_manager, db_session: Session):
        token = jwt.encode({}, token_manager.config.secret_key, algorithm="HS256")

        with pytest.raises(AuthenticationException) as exc_info:
            token_manager.verify(token, UserRepository(db_session))
        assert exc_info.value.reason == "no payload"

    def test_refresh_token_not_accepted(self, token_manager, db_session: Session, owner):
        pair = token_manager.issue(owner)

        with pytest.raises(AuthenticationException) as exc_info:
            token_manager.verify(pair.refresh_token, UserRepository(db_session))
        assert exc_info.value.reason == "wrong token type"

    def test_unknown_user(self, token_manager, db_session: Session, owner):
        pair = token_manager.issue(owner)
        db_session.delete(owner)
        db_session.commit()

        with pytest.raises(AuthenticationException) as exc_info:
            token_manager.verify(pair.access_token, UserRepository(db_session))
        assert exc_info.value.reason == "user not found"

    def test_reason_not_in_public_message(self, token_manager, db_session: Session):
        with pytest.raises(AuthenticationException) as exc_info:
            token_manager.verify("not-a-jwt", UserRepository(db_session))
        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Authentication required"


@pytest.mark.unit
class TestRefresh:

    def test_missing_token(self, token_manager, owner):
        pair = token_manager.issue(owner)

        with pytest.raises(BadRequestException):
            token_manager.refresh(pair.access_token, None)
        with pytest.raises(BadRequestException):
            token_manager.refresh("", pair.refresh_token)

    def test_unexpired_access_rejected(self, token_manager, owner):
        pair = token_manager.issue(owner)

        with pytest.raises(NotAcceptableException) as exc_info:
            token_manager.refresh(pair.access_token, pair.refresh_token)
        assert exc_info.value.status_code == 406
        assert exc_info.value.detail == "Token is not expired"

    def test_rotation_extends_expiration(self, token_manager, token_settings, owner, clock):
        pair = token_manager.issue(owner)
        old_access = claims(token_manager, pair.access_token)
        clock.advance(token_settings.access_ttl_ms + 1)

        new_pair = token_manager.refresh(pair.access_token, pair.refresh_token)

        new_access = claims(token_manager, new_pair.access_token)
        new_refresh = claims(token_manager, new_pair.refresh_token)
        assert new_access["expiration"] > old_access["expiration"]
        assert new_access["id"] == new_refresh["id"] == str(owner.id)
        assert new_access["email"] == "owner@example.com"
        assert new_access["expiration"] < new_refresh["expiration"]

    def test_expired_refresh_resets_session(self, token_manager, token_settings, owner, clock):
        pair = token_manager.issue(owner)
        clock.advance(token_settings.refresh_ttl_ms + 1)

        with pytest.raises(SessionResetException) as exc_info:
            token_manager.refresh(pair.access_token, pair.refresh_token)
        assert exc_info.value.status_code == 205
        assert exc_info.value.reason == "refresh expired"

    def test_tampered_refresh_resets_session(self, token_manager, owner, clock, token_settings):
        pair = token_manager.issue(owner)
        clock.advance(token_settings.access_ttl_ms + 1)

        with pytest.raises(SessionResetException):
            token_manager.refresh(pair.access_token, pair.refresh_token + "x")

    def test_mismatched_subjects_reset_session(self, token_manager, token_settings, owner, member_user, clock):
        mine = token_manager.issue(owner)
        theirs = token_manager.issue(member_user)
        clock.advance(token_settings.access_ttl_ms + 1)

        with pytest.raises(SessionResetException) as exc_info:
            token_manager.refresh(mine.access_token, theirs.refresh_token)
        assert exc_info.value.reason == "subject mismatch"

    def test_swapped_tokens_reset_session(self, token_manager, token_settings, owner, clock):
        pair = token_manager.issue(owner)
        clock.advance(token_settings.access_ttl_ms + 1)

        with pytest.raises(SessionResetException):
            token_manager.refresh(pair.refresh_token, pair.access_token)
