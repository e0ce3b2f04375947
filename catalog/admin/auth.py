"""HTTP Basic Auth guarding the catalog admin API.

Credentials come from ADMIN_USERNAME / ADMIN_WEB_PASSWORD. With no password
configured the API refuses every request instead of running open.
"""

from __future__ import annotations

import logging
import secrets

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from catalog.config import settings

logger = logging.getLogger(__name__)

basic_auth = HTTPBasic()


def _matches(given: str, expected: str) -> bool:
    return secrets.compare_digest(given.encode("utf-8"), expected.encode("utf-8"))


async def verify_admin(
    credentials: HTTPBasicCredentials = Depends(basic_auth),  # noqa: B008
) -> str:
    """FastAPI dependency: returns the admin username, 401 on bad credentials."""
    security = settings.security
    if not security.admin_web_password:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="ADMIN_WEB_PASSWORD not configured",
        )

    # Evaluate both so timing does not reveal which one was wrong
    user_ok = _matches(credentials.username, security.admin_username)
    password_ok = _matches(credentials.password, security.admin_web_password)
    if not (user_ok and password_ok):
        logger.warning("Rejected admin credentials for user %r", credentials.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )

    return credentials.username
