# ==============================================================================
# Batch Transmitter
# ==============================================================================
"""
Drains the event buffer into Batches and delivers them.

Delivery order for each batch:
1. The beacon transport (survives page teardown, fire-and-forget)
2. If the beacon is unavailable or refuses the payload, the fallback
   HTTP transport (asynchronous POST on a worker thread)

Delivery is never retried. Any failure is logged at DEBUG and the batch
is dropped; the caller never sees an exception.
"""

import json
import logging
from concurrent.futures import Future, ThreadPoolExecutor

import requests

from tracklens.core.models import TrackingBatch
from tracklens.tracker.config import TrackerConfig
from tracklens.tracker.page import Page
from tracklens.tracker.recorder import EventRecorder, TrackerState, swallow_errors

logger = logging.getLogger(__name__)


# ==============================================================================
# Transports
# ==============================================================================


class Transport:
    """Sends one serialized batch. Returns True when the send was queued."""

    def send(self, endpoint: str, body: str) -> bool:
        raise NotImplementedError


class BeaconTransport(Transport):
    """Delegates to the page's beacon capability, if it has one."""

    def __init__(self, page: Page):
        self.page = page

    def send(self, endpoint: str, body: str) -> bool:
        result = self.page.send_beacon(endpoint, body)
        # None means the capability is missing
        return bool(result)


class HttpTransport(Transport):
    """
    Fire-and-forget JSON POST using requests on a small thread pool.

    ``send()`` returns as soon as the request is queued; the response (or
    error) is only logged.
    """

    def __init__(self, timeout: float = 5.0, session: requests.Session | None = None, max_workers: int = 2):
        self.timeout = timeout
        self.session = session or requests.Session()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="tracklens-http")

    def send(self, endpoint: str, body: str) -> bool:
        future = self._executor.submit(self._post, endpoint, body)
        future.add_done_callback(self._log_result)
        return True

    def _post(self, endpoint: str, body: str) -> int:
        response = self.session.post(
            endpoint,
            data=body.encode("utf-8"),
            headers={"Content-Type": "application/json"},
            timeout=self.timeout,
        )
        return response.status_code

    @staticmethod
    def _log_result(future: Future) -> None:
        error = future.exception()
        if error is not None:
            logger.debug("Batch delivery failed: %s", error)
        else:
            logger.debug("Batch delivered (HTTP %s)", future.result())

    def close(self, wait: bool = True) -> None:
        """Stop the worker pool, optionally waiting for in-flight sends."""
        self._executor.shutdown(wait=wait)
        self.session.close()


# ==============================================================================
# Transmitter
# ==============================================================================


class BatchTransmitter:
    """Builds Batches from the recorder's buffer and hands them to transports."""

    def __init__(
        self,
        recorder: EventRecorder,
        page: Page,
        config: TrackerConfig,
        state: TrackerState,
        beacon: Transport | None = None,
        fallback: Transport | None = None,
    ):
        """
        Args:
            recorder: Owner of the event buffer
            page: Source of device metadata
            config: Endpoint and batch cap
            state: Session and user ids
            beacon: Preferred transport (None: always use the fallback)
            fallback: Transport used when the beacon is missing or refuses
        """
        self.recorder = recorder
        self.page = page
        self.config = config
        self.state = state
        self.beacon = beacon
        self.fallback = fallback
        self.batches_sent = 0

    def build_batch(self) -> TrackingBatch | None:
        """Remove up to max_batch_size events (FIFO) and wrap them in a Batch."""
        if not self.recorder.buffer:
            return None

        events = self.recorder.drain(self.config.max_batch_size)
        page = self.page
        return TrackingBatch(
            session_id=self.state.session_id,
            user_id=self.state.user_id,
            user_agent=page.user_agent,
            screen_resolution=f"{page.screen_width}x{page.screen_height}",
            language=page.language,
            platform=page.platform,
            timestamp=self.recorder.now(),
            events=events,
        )

    @swallow_errors
    def flush(self) -> None:
        """Deliver one batch. No-op when the buffer is empty."""
        batch = self.build_batch()
        if batch is None:
            return

        body = json.dumps(batch.to_wire())
        delivered = self.beacon is not None and self._try(self.beacon, body)
        if not delivered and self.fallback is not None:
            delivered = self._try(self.fallback, body)
        if delivered:
            self.batches_sent += 1

    def _try(self, transport: Transport, body: str) -> bool:
        try:
            return transport.send(self.config.endpoint, body)
        except Exception as e:
            logger.debug("%s failed: %s", type(transport).__name__, e)
            return False
