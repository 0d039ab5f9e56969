import logging
import random
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..database.models import AssetStatus, Location, MediaAsset
from ..errors import InsufficientContentError

logger = logging.getLogger(__name__)


def ready_assets(location: Location) -> List[MediaAsset]:
    """Images of a location that may be served to players."""
    return [asset for asset in location.media_assets if asset.status == AssetStatus.READY.value]


def pick_cover_asset(location: Location) -> Optional[MediaAsset]:
    """The ready primary image, else the lowest-id ready image."""
    assets = ready_assets(location)
    for asset in assets:
        if asset.is_primary:
            return asset
    return assets[0] if assets else None


class LocationCatalog:
    """Draws challenge locations from the locations table."""

    def __init__(self, session_factory: async_sessionmaker, rng: Optional[random.Random] = None):
        self.session_factory = session_factory
        self.rng = rng or random.Random()

    async def eligible_location_ids(self, db: AsyncSession) -> List[int]:
        """Ids of active locations with at least one ready image."""
        result = await db.execute(
            select(Location.id)
            .where(
                Location.is_active == True,
                Location.id.in_(
                    select(MediaAsset.location_id).where(MediaAsset.status == AssetStatus.READY.value)
                ),
            )
            .order_by(Location.id)
        )
        return list(result.scalars().all())

    async def sample_unique_active(self, count: int) -> List[Location]:
        """
        Pick ``count`` distinct eligible locations uniformly at random.

        Sampling is done without replacement over the eligible ids, so the
        result never holds the same location twice.

        Args:
            count: Number of locations to draw

        Returns:
            Locations with their images loaded, in draw order

        Raises:
            InsufficientContentError: fewer than ``count`` locations are eligible
        """
        async with self.session_factory() as db:
            eligible = await self.eligible_location_ids(db)
            if len(eligible) < count:
                raise InsufficientContentError(
                    f"Not enough locations with ready images. Found {len(eligible)}, need {count}."
                )

            chosen = self.rng.sample(eligible, count)
            result = await db.execute(select(Location).where(Location.id.in_(chosen)))
            by_id = {location.id: location for location in result.scalars().all()}

        if len(by_id) < count:
            # A location went inactive or vanished between the two queries
            raise InsufficientContentError("Location catalog changed while drawing a game, please retry.")

        logger.debug("Drew locations %s out of %d eligible", chosen, len(eligible))
        return [by_id[location_id] for location_id in chosen]

