"""Polling of platform-side processing status after an upload finishes."""

import asyncio
import logging

from api.metrics import STATUS_POLLS_TOTAL
from ingest.enums import PollResult, ProcessingStatus
from ingest.errors import ProcessingFailure
from ingest.graph_client import GraphVideoClient

logger = logging.getLogger(__name__)


class StatusPoller:
    """Waits for a video to leave the processing state, within a bounded budget."""

    def __init__(self, graph: GraphVideoClient, interval: float, max_attempts: int):
        self.graph = graph
        self.interval = interval
        self.max_attempts = max_attempts

    async def poll(self, video_id: str) -> PollResult:
        """
        Poll until ready, error, or the attempt budget runs out.

        Waits ``interval`` before every fetch (processing is never done the
        instant a session finishes).

        Returns:
            PollResult.READY, or PollResult.STILL_PROCESSING when the budget is
            exhausted while pending/unknown

        Raises:
            ProcessingFailure: The platform reported an error status
        """
        for attempt in range(1, self.max_attempts + 1):
            await asyncio.sleep(self.interval)

            status = await self.graph.get_status(video_id)
            STATUS_POLLS_TOTAL.labels(status=status.value).inc()
            logger.info(f"Status check {attempt}/{self.max_attempts} for video {video_id}: {status.value}")

            if status == ProcessingStatus.READY:
                return PollResult.READY
            if status == ProcessingStatus.ERROR:
                raise ProcessingFailure(
                    "Facebook failed to process video",
                    details=f"Video {video_id} reported status 'error'",
                )

        logger.warning(f"Video {video_id} still processing after {self.max_attempts} status checks")
        return PollResult.STILL_PROCESSING
