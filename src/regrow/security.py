import os
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import APIKeyHeader

API_KEY_HEADER_NAME = "X-API-Key"

# Set by the upstream auth gateway once the session has been verified.
USER_ID_HEADER_NAME = "X-User-Id"

api_key_header = APIKeyHeader(name=API_KEY_HEADER_NAME, auto_error=False)
user_id_header = APIKeyHeader(name=USER_ID_HEADER_NAME, auto_error=False)


def get_api_key() -> str | None:
    return os.environ.get("API_KEY")


async def verify_api_key(
    api_key: Annotated[str | None, Depends(api_key_header)],
) -> str | None:
    expected_key = get_api_key()
    if not expected_key or api_key != expected_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
        )
    return api_key


async def get_optional_user_id(
    user_id: Annotated[str | None, Depends(user_id_header)],
) -> str | None:
    """Identity of the visitor, or ``None`` for anonymous requests."""
    if user_id is None:
        return None
    return user_id.strip() or None


async def require_user_id(
    user_id: Annotated[str | None, Depends(get_optional_user_id)],
) -> str:
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="unauthorized",
        )
    return user_id


OptionalUserId = Annotated[str | None, Depends(get_optional_user_id)]
RequireUserId = Annotated[str, Depends(require_user_id)]
