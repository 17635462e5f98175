from fastapi import Header, HTTPException, status
from typing_extensions import Annotated


async def get_current_user_id(x_user_id: Annotated[int | None, Header()] = None) -> int:
    """Caller identity as set by the upstream auth proxy."""
    if x_user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )
    return x_user_id
