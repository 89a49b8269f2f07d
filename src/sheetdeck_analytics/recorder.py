"""
Pageview and interaction event recording.

Analytics writes are best-effort telemetry: a submission missing a required
field is dropped and reported as RecordOutcome.DROPPED, never as a failure.
Genuine backend faults (geo lookup, slug lookup, storage) are raised to the
caller without retry.
"""

import logging

from .core.models import InteractionEvent, PageviewEvent, RecordOutcome
from .core.storage import AnalyticsStorage
from .enrichment import IdentityEnricher
from .errors import GeoLookupFailedError, NotFoundError, StorageError

logger = logging.getLogger(__name__)


class EventRecorder:
    """Validates, enriches and stores analytics writes."""

    def __init__(self, storage: AnalyticsStorage, enricher: IdentityEnricher):
        self.storage = storage
        self.enricher = enricher

    async def record_pageview(self, event: PageviewEvent) -> RecordOutcome:
        """
        Record one pageview.

        Returns:
            DROPPED if route, client IP or user-agent is empty, else RECORDED

        Raises:
            GeoLookupFailedError: If the configured geo service fails
            StorageError: If the write fails
        """
        if not event.route or not event.client_ip or not event.user_agent:
            logger.debug("Dropping pageview with missing route, IP or user-agent")
            return RecordOutcome.DROPPED

        try:
            enrichment = await self.enricher.enrich(event.user_agent, event.client_ip)
        except GeoLookupFailedError as e:
            logger.warning(f"Pageview for {event.route} not recorded: geo lookup failed: {e}")
            raise

        fields = {
            "route": event.route,
            "browser": enrichment.browser,
            "os": enrichment.os,
            "device": enrichment.device,
            "hashed_ip": self.enricher.hash_ip(event.client_ip),
            "user_agent": event.user_agent,
            "country": enrichment.country,
            "referrer": event.referrer,
        }

        try:
            await self.storage.store_pageview(fields)
        except StorageError as e:
            logger.warning(f"Pageview for {event.route} not recorded: {e}")
            raise
        except Exception as e:
            logger.warning(f"Pageview for {event.route} not recorded: {e}")
            raise StorageError("store_pageview", str(e)) from e

        return RecordOutcome.RECORDED

    async def record_event(self, event: InteractionEvent) -> RecordOutcome:
        """
        Record one interaction event (click, download, ...).

        Returns:
            DROPPED if the client IP is empty, else RECORDED

        Raises:
            NotFoundError: If the cheatsheet slug does not exist
            StorageError: If the lookup or the write fails
        """
        if not event.client_ip:
            logger.debug("Dropping event with missing IP")
            return RecordOutcome.DROPPED

        try:
            cheatsheet_id = await self.storage.resolve_cheatsheet_id(event.cheatsheet_slug)
        except (NotFoundError, StorageError) as e:
            logger.warning(f"Event {event.event_type} not recorded: {e}")
            raise
        except Exception as e:
            logger.warning(f"Event {event.event_type} not recorded: {e}")
            raise StorageError("resolve_cheatsheet_id", str(e)) from e

        fields = {
            "cheatsheet_id": cheatsheet_id,
            "event_type": event.event_type,
            "route": event.route,
            "hashed_ip": self.enricher.hash_ip(event.client_ip),
        }

        try:
            await self.storage.store_event(fields)
        except StorageError as e:
            logger.warning(f"Event {event.event_type} not recorded: {e}")
            raise
        except Exception as e:
            logger.warning(f"Event {event.event_type} not recorded: {e}")
            raise StorageError("store_event", str(e)) from e

        return RecordOutcome.RECORDED
