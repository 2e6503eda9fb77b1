from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from .. import models
from ..db import get_session
from ..deps import get_current_user
from ..pipelines import education as education_pipeline
from ..schemas import EducationCreate, EducationOut, EducationUpdate

router = APIRouter(prefix="/education", tags=["Education"])


@router.get("", response_model=list[EducationOut])
async def list_education(
    session: AsyncSession = Depends(get_session),
    current_user: models.User = Depends(get_current_user),
):
    return await education_pipeline.list_education(session, current_user.id)


@router.post("", response_model=EducationOut, status_code=status.HTTP_201_CREATED)
async def create_education(
    request: EducationCreate,
    session: AsyncSession = Depends(get_session),
    current_user: models.User = Depends(get_current_user),
):
    return await education_pipeline.create_education(session, current_user.id, **request.model_dump())


@router.patch("/{education_id}", response_model=EducationOut)
async def update_education(
    education_id: int,
    request: EducationUpdate,
    session: AsyncSession = Depends(get_session),
    current_user: models.User = Depends(get_current_user),
):
    return await education_pipeline.update_education(
        session, current_user.id, education_id, **request.model_dump(exclude_unset=True)
    )


@router.delete("/{education_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_education(
    education_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: models.User = Depends(get_current_user),
):
    await education_pipeline.delete_education(session, current_user.id, education_id)
