"""FastAPI dependency injection helpers."""
from __future__ import annotations

from typing import Annotated, AsyncIterator

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from realtime_service.application.dto.principal import Principal
from realtime_service.application.ports.auth import TokenVerifier
from realtime_service.application.uow import UnitOfWork
from realtime_service.config import Settings, settings
from realtime_service.infrastructure.auth.hs256_verifier import HS256Verifier
from realtime_service.infrastructure.auth.jwks_verifier import JWKSVerifier
from realtime_service.services.hub import RealtimeHub

_bearer_scheme = HTTPBearer()


async def get_uow(request: Request) -> AsyncIterator[UnitOfWork]:
    async with request.app.state.uow_factory() as uow:
        yield uow


UoWDep = Annotated[UnitOfWork, Depends(get_uow)]


def get_hub(request: Request) -> RealtimeHub:
    return request.app.state.hub


HubDep = Annotated[RealtimeHub, Depends(get_hub)]


def build_verifier(config: Settings = settings) -> TokenVerifier:
    if config.JWT_VERIFY_MODE == "jwks":
        if not config.JWKS_URL:
            raise RuntimeError("JWKS_URL must be set when JWT_VERIFY_MODE=jwks")
        return JWKSVerifier(config.JWKS_URL)
    return HS256Verifier(config.JWT_SECRET, config.JWT_ALGORITHM)


def get_verifier(request: Request) -> TokenVerifier:
    return request.app.state.verifier


async def get_current_principal(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(_bearer_scheme)],
) -> Principal:
    verifier = get_verifier(request)
    try:
        return await verifier.verify(credentials.credentials)
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
