"""
Chunk transfer state machine.

Drives the session cursor from the negotiated start offset to end of file:

    cursor ──> ChunkSource.fetch(cursor, range_end)
           ──> GraphVideoClient.transfer(cursor, chunk)
           ──> cursor = ack.next_offset

The platform's acknowledged offset is the only thing that moves the cursor.
Its chunk boundaries may not match the requested range, and a partial
acceptance simply means the next range starts earlier.
"""

import asyncio
import logging
from typing import List

from api.metrics import BYTES_TRANSFERRED_TOTAL, CHUNKS_TRANSFERRED_TOTAL
from ingest.errors import StalledTransfer
from ingest.graph_client import GraphVideoClient
from ingest.models import UploadSession
from ingest.source import ChunkSource

logger = logging.getLogger(__name__)


class ChunkTransferEngine:
    """Transfers a source video into an upload session, one range at a time."""

    def __init__(
        self,
        source: ChunkSource,
        graph: GraphVideoClient,
        chunk_size: int,
        inter_chunk_delay: float,
    ):
        """
        Args:
            source: Range-addressed reader for the source video
            graph: Platform client used for the transfer phase
            chunk_size: Maximum bytes pulled and pushed per iteration
            inter_chunk_delay: Fixed pause after each acknowledged chunk (seconds)
        """
        self.source = source
        self.graph = graph
        self.chunk_size = chunk_size
        self.inter_chunk_delay = inter_chunk_delay

    async def run(self, account_id: str, source_url: str, session: UploadSession) -> List[int]:
        """
        Transfer everything from ``session.cursor`` to ``session.total_size``.

        Each iteration performs exactly one range fetch and one transfer call.
        Previously acknowledged bytes are never re-sent.

        Returns:
            The cursor positions visited, starting with the negotiated offset

        Raises:
            StalledTransfer: An acknowledgment did not move past the offset sent
            SourceFetchError, PlatformError, ProtocolViolation: From the collaborators
        """
        offsets = [session.cursor]

        while session.cursor < session.total_size:
            cursor = session.cursor
            range_end = min(cursor + self.chunk_size - 1, session.total_size - 1)

            chunk = await self.source.fetch(source_url, cursor, range_end)
            ack = await self.graph.transfer(account_id, session.session_id, cursor, chunk)

            if ack.next_offset <= cursor:
                logger.error(
                    f"Session {session.session_id}: no progress at offset {cursor} "
                    f"(acknowledged {ack.next_offset})"
                )
                raise StalledTransfer(cursor, ack.next_offset)

            session.cursor = ack.next_offset
            offsets.append(session.cursor)

            CHUNKS_TRANSFERRED_TOTAL.inc()
            BYTES_TRANSFERRED_TOTAL.inc(session.cursor - cursor)
            logger.debug(
                f"Session {session.session_id}: sent {cursor}-{range_end}, "
                f"platform next offset {ack.next_offset} (end_offset={ack.end_offset})"
            )

            # Throttle to avoid platform-side timeouts and rate limiting
            await asyncio.sleep(self.inter_chunk_delay)

        if session.cursor > session.total_size:
            logger.warning(
                f"Session {session.session_id}: platform acknowledged offset {session.cursor} "
                f"beyond file size {session.total_size}"
            )

        logger.info(
            f"Session {session.session_id}: transferred {session.total_size} bytes "
            f"in {len(offsets) - 1} chunk(s)"
        )
        return offsets
