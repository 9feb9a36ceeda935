"""View state for the statistics panels."""

import asyncio
from typing import Optional

from boulderflow.database.exceptions import SupabaseClientError
from boulderflow.database.gateway import RemoteDataGateway
from boulderflow.logging_config import get_logger
from boulderflow.models import CommunityStats, UserStats
from boulderflow.state.notifications import Notifier

logger = get_logger(__name__)


class StatsStore:
    """Holds the signed-in user's attempt statistics.

    Args:
        gateway: Remote data gateway.
        notifier: Receives a destructive notification when loading fails.
    """

    def __init__(self, gateway: RemoteDataGateway, notifier: Notifier) -> None:
        self._gateway = gateway
        self._notifier = notifier
        self.stats = UserStats()
        self.loading = False

    async def load(self, location_id: Optional[str] = None) -> UserStats:
        """Fetch statistics, optionally for one location.

        On failure the previous statistics are kept and returned.
        """
        self.loading = True
        try:
            self.stats = await asyncio.to_thread(
                self._gateway.get_user_stats, location_id
            )
        except SupabaseClientError as exc:
            logger.error("Error loading stats: %s", exc)
            self._notifier.error("Failed to load statistics. Please try again.")
        finally:
            self.loading = False
        return self.stats


class CommunityStatsStore:
    """Holds the landing-page community figures.

    The gateway already substitutes fallback figures, so loading never
    fails.
    """

    def __init__(self, gateway: RemoteDataGateway) -> None:
        self._gateway = gateway
        self.stats: Optional[CommunityStats] = None
        self.loading = True

    async def load(self) -> CommunityStats:
        try:
            self.stats = await asyncio.to_thread(self._gateway.get_community_stats)
        finally:
            self.loading = False
        return self.stats
