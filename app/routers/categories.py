from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, get_settings
from app.database import get_db
from app.schemas import CategoryListResponse
from app.services.categories import find_anomalies, list_categories

router = APIRouter(prefix="/api/categories", tags=["categories"])


@router.get("", response_model=CategoryListResponse)
async def get_categories(
    db: Annotated[AsyncSession, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
):
    """All active categories in display order, plus any integrity anomalies."""
    categories = await list_categories(db)
    return CategoryListResponse(
        categories=categories,
        total=len(categories),
        expected=settings.expected_category_count,
        anomalies=find_anomalies(categories, settings.expected_category_count),
    )
