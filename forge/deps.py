"""Shared FastAPI dependencies."""
from __future__ import annotations

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from assist.llm import LLMClient

from . import models
from .db import get_session
from .pipelines.users import UserNotFoundError, get_user


async def get_current_user(
    x_user_id: int = Header(..., alias="X-User-Id", description="Id of the acting user"),
    session: AsyncSession = Depends(get_session),
) -> models.User:
    """Resolve the acting user from the ``X-User-Id`` header."""
    try:
        return await get_user(session, x_user_id)
    except UserNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e)) from e


def get_llm() -> LLMClient:
    return LLMClient()
