"""View state for the feedback form and the approved-feedback wall."""

import asyncio
from typing import Optional

from pydantic import ValidationError

from boulderflow.database.exceptions import SupabaseClientError
from boulderflow.database.gateway import RemoteDataGateway
from boulderflow.logging_config import get_logger
from boulderflow.models import FeedbackDraft, FeedbackEntry
from boulderflow.state.notifications import Notifier

logger = get_logger(__name__)


class FeedbackStore:
    """Submits feedback and lists the approved entries.

    Args:
        gateway: Remote data gateway.
        notifier: Destination of success and failure notifications.
    """

    def __init__(self, gateway: RemoteDataGateway, notifier: Notifier) -> None:
        self._gateway = gateway
        self._notifier = notifier
        self.approved: list[FeedbackEntry] = []
        self.submitting = False

    async def submit(
        self, message: str, email: Optional[str] = None
    ) -> Optional[FeedbackEntry]:
        """Send feedback; blank messages are refused before any remote call.

        Returns:
            The stored entry, or None when refused or the submission failed.
        """
        if not message or not message.strip():
            self._notifier.error("Please enter your feedback before submitting.")
            return None

        self.submitting = True
        try:
            draft = FeedbackDraft(message=message, email=email)
            entry = await asyncio.to_thread(self._gateway.submit_feedback, draft)
        except (SupabaseClientError, ValidationError, ValueError) as exc:
            logger.error("Error submitting feedback: %s", exc)
            self._notifier.error("Failed to submit feedback. Please try again.")
            return None
        finally:
            self.submitting = False

        self._notifier.success("Thank you for your feedback!")
        return entry

    async def load_approved(self, min_rating: int = 5) -> list[FeedbackEntry]:
        """Reload approved feedback; keeps the previous list on failure."""
        try:
            self.approved = await asyncio.to_thread(
                self._gateway.list_approved_feedback, min_rating
            )
        except SupabaseClientError as exc:
            logger.error("Error loading feedback: %s", exc)
        return self.approved
