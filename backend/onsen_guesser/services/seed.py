import logging
from typing import Any, Dict, List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..database.models import AssetStatus, Location, MediaAsset

logger = logging.getLogger(__name__)

PLACEHOLDER_IMAGE = "https://picsum.photos/id/{n}/800/600.jpg"
PLACEHOLDER_THUMBNAIL = "https://picsum.photos/id/{n}/300/225.jpg"

SAMPLE_LOCATIONS: List[Dict[str, Any]] = [
    {
        "name": "Kusatsu Onsen",
        "prefecture": "Gunma",
        "city": "Kusatsu",
        "latitude": 36.6227,
        "longitude": 138.5969,
        "description": "One of Japan's three famous springs, built around the Yubatake hot water field.",
        "features": ["acidic spring", "sulfur spring", "yubatake", "hot spring town"],
        "difficulty": "easy",
    },
    {
        "name": "Hakone Onsen",
        "prefecture": "Kanagawa",
        "city": "Hakone",
        "latitude": 35.2322,
        "longitude": 139.1067,
        "description": "Mountain resort close to Tokyo with views of Mt. Fuji.",
        "features": ["simple spring", "mountain view", "ryokan"],
        "difficulty": "medium",
    },
    {
        "name": "Beppu Onsen",
        "prefecture": "Oita",
        "city": "Beppu",
        "latitude": 33.2846,
        "longitude": 131.4914,
        "description": "The country's largest hot spring output, famous for its steaming hells.",
        "features": ["jigoku", "sand bath", "steam"],
        "difficulty": "medium",
    },
    {
        "name": "Arima Onsen",
        "prefecture": "Hyogo",
        "city": "Kobe",
        "latitude": 34.7972,
        "longitude": 135.2482,
        "description": "Ancient spa behind Mt. Rokko with golden and silver waters.",
        "features": ["kinsen", "ginsen", "historic"],
        "difficulty": "hard",
    },
    {
        "name": "Dogo Onsen",
        "prefecture": "Ehime",
        "city": "Matsuyama",
        "latitude": 33.8519,
        "longitude": 132.7861,
        "description": "Said to be the oldest hot spring in Japan, with its wooden main building.",
        "features": ["alkaline spring", "historic bathhouse"],
        "difficulty": "medium",
    },
    {
        "name": "Kinugawa Onsen",
        "prefecture": "Tochigi",
        "city": "Nikko",
        "latitude": 36.8356,
        "longitude": 139.7519,
        "description": "Riverside resort in a deep valley north of Tokyo.",
        "features": ["river gorge", "simple spring"],
        "difficulty": "easy",
    },
    {
        "name": "Atami Onsen",
        "prefecture": "Shizuoka",
        "city": "Atami",
        "latitude": 35.0951,
        "longitude": 139.0681,
        "description": "Seaside spa town on the Izu coast.",
        "features": ["ocean view", "chloride spring"],
        "difficulty": "easy",
    },
    {
        "name": "Ginzan Onsen",
        "prefecture": "Yamagata",
        "city": "Obanazawa",
        "latitude": 38.7333,
        "longitude": 140.5344,
        "description": "Taisho-era wooden inns lining a narrow river, lit by gas lamps at night.",
        "features": ["taisho architecture", "snow", "gas lamps"],
        "difficulty": "hard",
    },
]


async def seed_sample_locations(session_factory: async_sessionmaker) -> int:
    """
    Insert the bundled sample locations when the catalog is empty.

    Returns:
        Number of locations inserted
    """
    async with session_factory() as db:
        async with db.begin():
            existing = await db.scalar(select(func.count(Location.id)))
            if existing:
                logger.info("Catalog already holds %d locations, skipping seed", existing)
                return 0

            for n, data in enumerate(SAMPLE_LOCATIONS, 1):
                location = Location(is_active=True, **data)
                location.media_assets = [
                    MediaAsset(
                        url=PLACEHOLDER_IMAGE.format(n=n * 10),
                        thumbnail_url=PLACEHOLDER_THUMBNAIL.format(n=n * 10),
                        alt=data["name"],
                        width=800,
                        height=600,
                        is_primary=True,
                        status=AssetStatus.READY.value,
                    )
                ]
                db.add(location)

    logger.info("Seeded %d sample locations", len(SAMPLE_LOCATIONS))
    return len(SAMPLE_LOCATIONS)
