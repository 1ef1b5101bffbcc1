"""
X-API-KEY authentication for the tracker API.

Every route except ``/health`` depends on ``verify_api_key``: starting a
refresh and editing notification subscribers are operator actions.
Keys come from the comma-separated ``API_KEYS`` setting; when it holds
no keys the API is open, which is the local development setup.
"""

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader

from adoption_tracker.config.settings import Settings, get_settings

DEV_MODE_KEY = "dev-mode"

api_key_header = APIKeyHeader(name="X-API-KEY", auto_error=False)


def _configured_keys(settings: Settings) -> frozenset[str]:
    if not settings.api_keys:
        return frozenset()
    return frozenset(k.strip() for k in settings.api_keys.split(",") if k.strip())


async def verify_api_key(api_key: str | None = Security(api_key_header)) -> str:
    """
    Resolve the caller's API key.

    Returns:
        The accepted key, or ``"dev-mode"`` when no keys are configured.

    Raises:
        HTTPException: 401 if keys are configured and the header is missing or unknown
    """
    keys = _configured_keys(get_settings())
    if not keys:
        return DEV_MODE_KEY

    if api_key is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key. Provide X-API-KEY header.",
        )
    if api_key not in keys:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
        )
    return api_key
