"""Category registry: the fixed, ordered set of life axes every user tracks."""

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import upsert
from app.errors import DataIntegrityAnomaly, InvalidArgument
from app.models import Category

logger = logging.getLogger(__name__)


DEFAULT_CATEGORIES = [
    {
        "slug": "physical",
        "name": {"en": "Physical", "es": "Física"},
        "description": {"en": "Exercise, health, and nutrition", "es": "Ejercicio, salud y nutrición"},
        "color": "#65D39A",
        "icon": "activity",
        "position": 1,
    },
    {
        "slug": "mental",
        "name": {"en": "Mental", "es": "Mental"},
        "description": {"en": "Learning, focus, and productivity", "es": "Aprendizaje, enfoque y productividad"},
        "color": "#9B8AE6",
        "icon": "brain",
        "position": 2,
    },
    {
        "slug": "emotional",
        "name": {"en": "Emotional", "es": "Emocional"},
        "description": {"en": "Mood and stress management", "es": "Estado de ánimo y manejo del estrés"},
        "color": "#FF8B7D",
        "icon": "heart",
        "position": 3,
    },
    {
        "slug": "social",
        "name": {"en": "Social", "es": "Social"},
        "description": {"en": "Relationships and connections", "es": "Relaciones y conexiones"},
        "color": "#6AA6FF",
        "icon": "users",
        "position": 4,
    },
    {
        "slug": "spiritual",
        "name": {"en": "Spiritual", "es": "Espiritual"},
        "description": {"en": "Meditation, purpose, and mindfulness", "es": "Meditación, propósito y mindfulness"},
        "color": "#4ECDC4",
        "icon": "sparkles",
        "position": 5,
    },
    {
        "slug": "material",
        "name": {"en": "Material", "es": "Material"},
        "description": {"en": "Finance, career, and resources", "es": "Finanzas, carrera y recursos"},
        "color": "#FFD166",
        "icon": "briefcase",
        "position": 6,
    },
]


async def seed_default_categories(db: AsyncSession) -> None:
    """Insert the default categories, leaving existing slugs untouched."""
    stmt = upsert(db, Category).values(
        [{**category, "active": True} for category in DEFAULT_CATEGORIES]
    )
    await db.execute(stmt.on_conflict_do_nothing(index_elements=["slug"]))


async def list_categories(db: AsyncSession) -> list[Category]:
    """All active categories in display order."""
    result = await db.execute(
        select(Category)
        .where(Category.active.is_(True))
        .order_by(Category.position, Category.id)
    )
    return list(result.scalars().all())


async def get_active_category(db: AsyncSession, category_id: int) -> Category:
    category = await db.get(Category, category_id)
    if category is None or not category.active:
        raise InvalidArgument(
            f"Unknown category {category_id}",
            details={"category_id": category_id},
        )
    return category


async def count_active_categories(db: AsyncSession) -> int:
    result = await db.execute(
        select(func.count()).select_from(Category).where(Category.active.is_(True))
    )
    return int(result.scalar_one())


def find_anomalies(categories: list[Category], expected: int) -> list[str]:
    """
    Describe how the active category set deviates from its configured shape.

    Never drops categories: callers show everything they got and report
    the anomaly instead.
    """
    anomalies: list[str] = []
    if len(categories) != expected:
        anomalies.append(
            f"Expected {expected} active categories, found {len(categories)}"
        )

    positions = [c.position for c in categories]
    if len(set(positions)) != len(positions):
        anomalies.append("Duplicate category positions: " + ", ".join(map(str, sorted(positions))))

    for message in anomalies:
        logger.error("Category data integrity anomaly: %s", message)
    return anomalies


async def verify_category_set(db: AsyncSession, expected: int, strict: bool = False) -> list[str]:
    """Startup check of the registry. Raises only in strict mode."""
    anomalies = find_anomalies(await list_categories(db), expected)
    if anomalies and strict:
        raise DataIntegrityAnomaly("Category set does not match configuration", details=anomalies)
    return anomalies
