"""Upload session negotiation and finalization."""

import logging

from ingest.errors import ProtocolViolation
from ingest.graph_client import GraphVideoClient
from ingest.models import UploadSession

logger = logging.getLogger(__name__)


class SessionNegotiator:
    """Opens a fresh upload session with the platform."""

    def __init__(self, graph: GraphVideoClient):
        self.graph = graph

    async def negotiate(self, account_id: str, total_size: int) -> UploadSession:
        """
        Start a session for ``total_size`` bytes.

        The cursor starts at the platform-provided offset, which is not
        necessarily zero.
        """
        started = await self.graph.start(account_id, total_size)
        session = UploadSession(
            session_id=started["upload_session_id"],
            video_id=started["video_id"],
            cursor=started["start_offset"],
            total_size=total_size,
        )
        if session.cursor > total_size:
            raise ProtocolViolation(
                "Unexpected response from video platform",
                details=f"start_offset {session.cursor} is beyond file size {total_size}",
            )
        logger.info(
            f"Upload session {session.session_id} started for video {session.video_id} "
            f"(size={total_size}, start_offset={session.cursor})"
        )
        return session


class SessionFinalizer:
    """Signals upload completion to the platform."""

    def __init__(self, graph: GraphVideoClient):
        self.graph = graph

    async def finalize(self, account_id: str, session: UploadSession) -> None:
        """
        Finish the session once every byte has been acknowledged.

        Raises:
            ProtocolViolation: If the cursor has not reached total_size
        """
        if not session.complete:
            raise ProtocolViolation(
                "Upload incomplete",
                details=f"Cannot finish session at offset {session.cursor} of {session.total_size}",
            )
        await self.graph.finish(account_id, session.session_id)
        logger.info(f"Upload session {session.session_id} finished")
