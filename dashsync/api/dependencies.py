"""
FastAPI dependencies for the reference API.

The repository and settings live on `app.state` so tests can build an app
with their own instances.
"""

import hmac
import logging
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from dashsync.core.config import Settings
from dashsync.repos.snapshot_repo import SnapshotRepository

logger = logging.getLogger(__name__)


def get_repository(request: Request) -> SnapshotRepository:
    return request.app.state.repository


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


Repository = Annotated[SnapshotRepository, Depends(get_repository)]


def verify_api_token(
    request: Request,
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    """
    Require `Authorization: Bearer <API_TOKEN>` when a token is configured.

    With no token configured every request passes.
    """
    expected_token = get_app_settings(request).api_token
    if not expected_token:
        return

    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not hmac.compare_digest(token, expected_token):
        logger.warning(
            "Unauthorized API access attempt",
            extra={
                "security_event": True,
                "event_type": "AUTH_FAILURE",
                "path": request.url.path,
            },
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
