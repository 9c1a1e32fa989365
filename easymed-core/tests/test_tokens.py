"""
Tests for access and refresh token issuance.
"""

import pytest

from easymed_core.config import TokenConfig

SECRET = "test-secret-key-that-is-at-least-32-bytes"
CLAIMS = {"identifier": "+919876543210", "user_type": "patient"}


@pytest.fixture
def issuer(store, audit, clock):
    from easymed_core.tokens import TokenIssuer

    return TokenIssuer(store, audit, TokenConfig(secret=SECRET), clock=clock)


class TestAccessTokens:
    """Tests for signed access tokens."""

    def test_claims(self, issuer, clock):
        pair = issuer.issue_token_pair("patient_1", CLAIMS)

        claims = issuer.verify_access_token(pair.access_token)

        assert claims["sub"] == "patient_1"
        assert claims["type"] == "access"
        assert claims["aud"] == "easymedpro-users"
        assert claims["iss"] == "easymedpro"
        assert claims["identifier"] == "+919876543210"
        assert claims["exp"] - claims["iat"] == 900
        assert claims["iat"] == int(clock())

    def test_reserved_claims_cannot_be_overridden(self, issuer):
        token = issuer.create_access_token("patient_1", {"sub": "admin", "type": "refresh", "role": "x"})

        claims = issuer.verify_access_token(token)

        assert claims["sub"] == "patient_1"
        assert claims["type"] == "access"
        assert claims["role"] == "x"

    def test_access_token_expires(self, issuer, clock):
        from easymed_core.errors import TokenExpired

        token = issuer.create_access_token("patient_1")
        clock.advance(899)
        issuer.verify_access_token(token)

        clock.advance(1)
        with pytest.raises(TokenExpired):
            issuer.verify_access_token(token)

    def test_foreign_signature_rejected(self, issuer):
        import jwt
        from easymed_core.errors import TokenInvalid

        token = issuer.create_access_token("patient_1")
        claims = jwt.decode(token, options={"verify_signature": False})
        forged = jwt.encode(claims, "another-secret-key-that-is-32-bytes-long", algorithm="HS256")

        with pytest.raises(TokenInvalid):
            issuer.verify_access_token(forged)

    def test_wrong_audience_rejected(self, issuer, store, audit, clock):
        from easymed_core.errors import TokenInvalid
        from easymed_core.tokens import TokenIssuer

        other = TokenIssuer(store, audit, TokenConfig(secret=SECRET, audience="other"), clock=clock)

        with pytest.raises(TokenInvalid):
            issuer.verify_access_token(other.create_access_token("patient_1"))

    def test_garbage_rejected(self, issuer):
        from easymed_core.errors import TokenInvalid

        for token in ("", "not.a.jwt", "abc"):
            with pytest.raises(TokenInvalid):
                issuer.verify_access_token(token)


class TestRefreshTokens:
    """Tests for opaque refresh tokens."""

    def test_refresh_issues_new_access_token(self, issuer):
        pair = issuer.issue_token_pair("patient_1", CLAIMS)

        access = issuer.refresh(pair.refresh_token)

        claims = issuer.verify_access_token(access)
        assert claims["sub"] == "patient_1"
        assert claims["user_type"] == "patient"
        # the refresh token keeps working
        issuer.refresh(pair.refresh_token)

    def test_refresh_token_stored_hashed(self, issuer, store):
        pair = issuer.issue_token_pair("patient_1", CLAIMS)

        assert not any(pair.refresh_token in key for key in store.keys("refresh:"))

    def test_unknown_refresh_token(self, issuer):
        from easymed_core.errors import TokenInvalid

        with pytest.raises(TokenInvalid):
            issuer.refresh("made-up-token")

    def test_revoked_refresh_token(self, issuer, audit):
        from easymed_core.audit import AuditEventKind
        from easymed_core.errors import TokenRevoked

        pair = issuer.issue_token_pair("patient_1", CLAIMS)
        assert issuer.revoke(pair.refresh_token) is True
        assert issuer.revoke(pair.refresh_token) is False

        with pytest.raises(TokenRevoked):
            issuer.refresh(pair.refresh_token)
        assert len(audit.find(kind=AuditEventKind.TOKEN_REJECTED)) == 1

    def test_expired_refresh_token(self, issuer, clock):
        from easymed_core.errors import TokenExpired

        pair = issuer.issue_token_pair("patient_1", CLAIMS)
        clock.advance(7 * 24 * 3600)

        with pytest.raises(TokenExpired):
            issuer.refresh(pair.refresh_token)

    def test_rotate(self, issuer):
        from easymed_core.errors import TokenRevoked

        pair = issuer.issue_token_pair("patient_1", CLAIMS)

        rotated = issuer.rotate(pair.refresh_token)

        assert rotated.refresh_token != pair.refresh_token
        issuer.refresh(rotated.refresh_token)
        with pytest.raises(TokenRevoked):
            issuer.refresh(pair.refresh_token)

    def test_revoke_all(self, issuer):
        from easymed_core.errors import TokenRevoked

        first = issuer.issue_token_pair("patient_1", CLAIMS)
        second = issuer.issue_token_pair("patient_1", CLAIMS)
        other = issuer.issue_token_pair("doctor_1", {})

        assert issuer.subject_for(first.refresh_token) == "patient_1"
        assert issuer.revoke_all("patient_1") == 2
        assert issuer.revoke_all("patient_1") == 0

        for token in (first.refresh_token, second.refresh_token):
            with pytest.raises(TokenRevoked):
                issuer.refresh(token)
        issuer.refresh(other.refresh_token)

    def test_token_pair_serialization(self, issuer):
        body = issuer.issue_token_pair("patient_1", CLAIMS).to_dict()

        assert body["token_type"] == "Bearer"
        assert body["expires_in"] == 900
        assert body["refresh_expires_in"] == 7 * 24 * 3600
