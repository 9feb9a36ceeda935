"""View-state stores driven by a UI layer."""

from boulderflow.state.feedback import FeedbackStore
from boulderflow.state.notifications import Notification, Notifier
from boulderflow.state.route_data import RouteDataStore
from boulderflow.state.stats import CommunityStatsStore, StatsStore

__all__ = [
    "CommunityStatsStore",
    "FeedbackStore",
    "Notification",
    "Notifier",
    "RouteDataStore",
    "StatsStore",
]
