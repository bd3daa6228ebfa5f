"""
Attempt-level retry around the full upload sequence.

One attempt is negotiate -> transfer -> finalize -> poll against a brand-new
session. A failed attempt is only retried when the fault is retryable (flagged
transient by the platform, or a protocol violation that leaves the session
untrustworthy) and the attempt budget allows it. Retries always start over
from session negotiation, never mid-session. Backoff is fixed.
"""

import asyncio
import logging
import time
from typing import Optional

import httpx

from api.metrics import UPLOAD_ATTEMPTS_TOTAL, UPLOAD_DURATION_SECONDS, UPLOADS_TOTAL
from ingest.alerts import alert_upload_failed, alert_upload_still_processing, send_alert_fire_and_forget
from ingest.enums import OutcomeKind, PollResult
from ingest.errors import SizeError, UploadError, UploadFailed, UploadValidationError
from ingest.graph_client import GraphVideoClient
from ingest.http_client import ClientConfig
from ingest.models import AttemptOutcome, UploadPolicy, UploadRequest, UploadResult
from ingest.session import SessionFinalizer, SessionNegotiator
from ingest.source import ChunkSource, SizeProbe
from ingest.status import StatusPoller
from ingest.transfer import ChunkTransferEngine

logger = logging.getLogger(__name__)


class RetryOrchestrator:
    """Runs a whole upload, retrying retryable failures with a fresh session."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        access_token: str,
        client_config: Optional[ClientConfig] = None,
        policy: Optional[UploadPolicy] = None,
        graph: Optional[GraphVideoClient] = None,
    ):
        """
        Wire the upload components around one shared HTTP client.

        Args:
            client: Pooled HTTP client (owned by the caller)
            access_token: Platform access token
            client_config: Per-call timeouts (defaults from config.py)
            policy: Chunking, polling and retry limits (defaults from config.py)
            graph: Optional pre-built platform client
        """
        self.client_config = client_config or ClientConfig()
        self.policy = policy or UploadPolicy()
        self.graph = graph or GraphVideoClient(client, self.client_config, access_token)

        self.size_probe = SizeProbe(client, self.client_config, self.policy.max_video_size)
        self.negotiator = SessionNegotiator(self.graph)
        self.engine = ChunkTransferEngine(
            ChunkSource(client, self.client_config),
            self.graph,
            chunk_size=self.policy.chunk_size,
            inter_chunk_delay=self.policy.inter_chunk_delay,
        )
        self.finalizer = SessionFinalizer(self.graph)
        self.poller = StatusPoller(self.graph, self.policy.poll_interval, self.policy.poll_max_attempts)

    async def run_attempt(self, request: UploadRequest, total_size: int) -> AttemptOutcome:
        """Run one attempt against a new session and classify how it ended."""
        try:
            session = await self.negotiator.negotiate(request.account_id, total_size)
            await self.engine.run(request.account_id, request.source_url, session)
            await self.finalizer.finalize(request.account_id, session)
            poll_result = await self.poller.poll(session.video_id)
        except UploadError as e:
            if e.retryable:
                return AttemptOutcome.retryable(e)
            return AttemptOutcome.fatal(e)
        except Exception as e:
            logger.exception(f"Unexpected error during upload attempt: {e}")
            return AttemptOutcome.fatal(UploadError(f"Unexpected error: {type(e).__name__}", details=str(e)))

        return AttemptOutcome.success(session.video_id, processing_complete=poll_result == PollResult.READY)

    async def upload(self, request: UploadRequest) -> UploadResult:
        """
        Upload the video described by ``request``.

        Returns:
            UploadResult; processing_complete is False when the platform had
            not finished processing within the poll budget

        Raises:
            UploadValidationError, SizeError: Pre-flight rejection, never retried
            SourceFetchError: The size probe could not reach the source
            UploadFailed: An attempt failed fatally or the attempt budget ran out
        """
        try:
            request.validate()
            total_size = await self.size_probe.probe(request.source_url)
        except (UploadValidationError, SizeError):
            UPLOADS_TOTAL.labels(result="rejected").inc()
            raise
        except UploadError:
            UPLOADS_TOTAL.labels(result="failed").inc()
            raise

        started = time.monotonic()
        max_attempts = self.policy.max_attempts
        outcome: Optional[AttemptOutcome] = None
        attempt = 0

        while attempt < max_attempts:
            attempt += 1
            logger.info(f"[Attempt {attempt}/{max_attempts}] Uploading video for {request.account_id}")

            outcome = await self.run_attempt(request, total_size)
            UPLOAD_ATTEMPTS_TOTAL.labels(outcome=outcome.kind.value).inc()

            if outcome.kind == OutcomeKind.SUCCESS:
                UPLOAD_DURATION_SECONDS.observe(time.monotonic() - started)
                if outcome.processing_complete:
                    UPLOADS_TOTAL.labels(result="success").inc()
                    logger.info(f"Video {outcome.video_id} uploaded and ready")
                else:
                    UPLOADS_TOTAL.labels(result="still_processing").inc()
                    send_alert_fire_and_forget(
                        alert_upload_still_processing(
                            request.account_id, outcome.video_id, self.policy.poll_max_attempts
                        )
                    )
                return UploadResult(
                    video_id=outcome.video_id,
                    processing_complete=outcome.processing_complete,
                    attempts=attempt,
                )

            error = outcome.error
            logger.error(f"Upload attempt {attempt} failed: {error.details or error.message}")

            if outcome.kind == OutcomeKind.RETRYABLE and attempt < max_attempts:
                logger.warning(
                    f"Retrying video upload after {type(error).__name__} in {self.policy.retry_backoff}s "
                    f"(new session)"
                )
                await asyncio.sleep(self.policy.retry_backoff)
                continue
            break

        failure = UploadFailed(outcome.error, attempt)
        UPLOADS_TOTAL.labels(result="failed").inc()
        send_alert_fire_and_forget(
            alert_upload_failed(
                request.account_id,
                request.source_url,
                attempt,
                outcome.error.message,
                retryable=outcome.error.retryable,
            )
        )
        raise failure from outcome.error
