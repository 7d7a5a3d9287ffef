from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from app.exceptions import InvalidPendingTokenError
from app.utils.pending_token import PendingConnection, PendingTokenSigner
from tests.conftest import TOKEN_SECRET

PENDING = PendingConnection(memory_id="mem_1", scan_id="scan_1", code="conn_abc", owner_user_id="u1")


def test_issue_and_verify(signer):
    token = signer.issue(PENDING, datetime.now(timezone.utc))

    assert signer.verify(token) == PENDING


def test_expired_token_is_rejected(signer):
    token = signer.issue(PENDING, datetime.now(timezone.utc) - timedelta(days=8))

    with pytest.raises(InvalidPendingTokenError):
        signer.verify(token)


@pytest.mark.parametrize("token", [None, "", "not-a-jwt"])
def test_malformed_tokens_are_rejected(signer, token):
    with pytest.raises(InvalidPendingTokenError):
        signer.verify(token)


def test_token_signed_with_other_secret_is_rejected(signer):
    token = PendingTokenSigner("someone-elses-secret").issue(PENDING, datetime.now(timezone.utc))

    with pytest.raises(InvalidPendingTokenError):
        signer.verify(token)


def test_token_missing_claims_is_rejected(signer):
    now = datetime.now(timezone.utc)
    token = jwt.encode({"mid": "mem_1", "exp": int((now + timedelta(hours=1)).timestamp())}, TOKEN_SECRET, algorithm="HS256")

    with pytest.raises(InvalidPendingTokenError):
        signer.verify(token)
