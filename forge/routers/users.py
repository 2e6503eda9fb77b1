from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from .. import models
from ..db import get_session
from ..deps import get_current_user
from ..pipelines.skills import list_user_skills
from ..pipelines.users import create_user
from ..schemas import UserCreate, UserOut, UserSkillOut

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def register_user(
    request: UserCreate,
    session: AsyncSession = Depends(get_session),
):
    """Create a user"""
    return await create_user(session, **request.model_dump())


@router.get("/me", response_model=UserOut)
async def read_current_user(current_user: models.User = Depends(get_current_user)):
    return current_user


@router.get("/me/skills", response_model=list[UserSkillOut])
async def read_current_user_skills(
    session: AsyncSession = Depends(get_session),
    current_user: models.User = Depends(get_current_user),
):
    """All skills in the user's profile"""
    return await list_user_skills(session, current_user.id)
