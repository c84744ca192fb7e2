from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from .. import crud
from ..db import get_db

router = APIRouter(prefix="/tags", tags=["tags"])


@router.get("", response_model=List[str])
async def list_tags(db: AsyncSession = Depends(get_db)):
    """Every distinct tag in use, sorted"""
    return await crud.list_tags(db)
