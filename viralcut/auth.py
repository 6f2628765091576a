"""
Upload guard for deployments that are not meant to be public.

When VIRALCUT_API_KEY is set, POST /api/upload only accepts requests that
carry the same value in X-ViralCut-API-Key. Status polling, styles and health
stay open so the browser page keeps working behind a proxy that adds the key.
"""

import logging
import secrets
from typing import Optional

from fastapi import Header, HTTPException, status

from viralcut.config import get_settings

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-ViralCut-API-Key"


def _reject(reason: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=reason,
        headers={"WWW-Authenticate": API_KEY_HEADER},
    )


async def verify_api_key(
    provided_key: Optional[str] = Header(None, alias=API_KEY_HEADER),
) -> None:
    """
    Dependency on the upload route. A no-op while no key is configured.
    """
    configured_key = get_settings().viralcut_api_key
    if not configured_key:
        return

    if not provided_key:
        logger.warning(f"Upload rejected: {API_KEY_HEADER} header missing")
        raise _reject("Missing API key")

    if not secrets.compare_digest(provided_key, configured_key):
        logger.warning("Upload rejected: API key mismatch")
        raise _reject("Invalid API key")
