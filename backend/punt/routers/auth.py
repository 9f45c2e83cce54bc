"""Principal introspection and API-key issuance.

Session tokens are issued by the identity service in front of Punt; this
router only reports who the caller is and rotates their service API key.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from punt.auth.api_keys import generate_api_key, hash_api_key
from punt.auth.deps import get_current_user
from punt.database import get_db
from punt.models.user import User
from punt.schemas.auth import ApiKeyOut, UserOut

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/me", response_model=UserOut)
async def me(user: User = Depends(get_current_user)):
    return UserOut.model_validate(user)


@router.post("/api-key", response_model=ApiKeyOut, status_code=201)
async def rotate_api_key(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Issue a new API key for the caller, replacing any previous one.

    The plaintext key is returned once; only its hash is stored.
    """
    api_key = generate_api_key()
    user.api_key_hash = hash_api_key(api_key)
    await db.flush()
    logger.info(f"API key rotated for user {user.id}")
    return ApiKeyOut(api_key=api_key, key_hint=api_key[-4:])
