from __future__ import annotations

import jwt
import pytest

from realtime_service.application.dto.principal import Principal
from realtime_service.application.exceptions import AuthRequiredError
from realtime_service.infrastructure.auth.hs256_verifier import HS256Verifier

SECRET = "unit-test-secret-long-enough-for-hs256-keys"


@pytest.mark.asyncio
async def test_hs256_token_maps_to_principal():
    token = jwt.encode({"sub": "7", "roles": ["member"]}, SECRET, algorithm="HS256")

    principal = await HS256Verifier(SECRET).verify(token)

    assert principal == Principal(user_id=7, roles=["member"])


@pytest.mark.asyncio
async def test_hs256_rejects_foreign_signature():
    token = jwt.encode({"sub": "7"}, "some-other-secret-that-is-also-long-enough", algorithm="HS256")

    with pytest.raises(jwt.InvalidSignatureError):
        await HS256Verifier(SECRET).verify(token)


@pytest.mark.parametrize("claims", [{}, {"sub": "alice"}, {"sub": "0"}])
def test_principal_needs_numeric_subject(claims):
    with pytest.raises(AuthRequiredError):
        Principal.from_claims(claims)
