"""
Pinboard Backend — ImageKit Upload Service
============================================

What:  Client for the ImageKit upload API, used by pin creation.
Why:   ImageKit stores the pin image and applies the pre-transformation
       (resize, pad, text overlay) computed by image_transform.py; the
       response carries the stored path and the final pixel size.
How:   httpx.AsyncClient with HTTP basic auth (private key as username),
       tenacity retries for transport-level failures, and a circuit breaker
       so a dead upstream fails pin creation fast.

Resilience Strategy:
    transport error (DNS, connect, read timeout)  → retried with backoff + jitter
    5xx from ImageKit                             → not retried, counts as a breaker failure
    4xx from ImageKit (bad transform, auth)       → not retried, not a breaker failure
    N consecutive failures                        → breaker OPEN for cb_recovery_timeout
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import Optional

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from pinboard.config import Settings
from pinboard.exceptions import CircuitBreakerOpenError, ImageServiceError

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    Three-state breaker guarding calls to the image service.

        CLOSED     calls pass; consecutive failures are counted
        OPEN       calls rejected with CircuitBreakerOpenError until the
                   recovery timeout has elapsed since the last failure
        HALF_OPEN  one trial call passes; success closes the breaker,
                   failure opens it again

    Not thread-safe. Uvicorn runs one event loop per worker, and each
    worker keeps its own breaker.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """
        Returns True when a call may proceed.

        Raises:
            CircuitBreakerOpenError while OPEN and still inside the recovery window.
        """
        if self.state == self.OPEN:
            elapsed = time.monotonic() - (self.last_failure_time or 0)
            if elapsed < self.recovery_timeout:
                raise CircuitBreakerOpenError(recovery_time=int(self.recovery_timeout - elapsed) + 1)
            logger.info("Image service breaker HALF_OPEN after %.1fs", elapsed)
            self.state = self.HALF_OPEN
        return True

    def record_success(self) -> None:
        if self.state != self.CLOSED:
            logger.info("Image service breaker CLOSED (service recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.monotonic()

        if self.state == self.HALF_OPEN:
            logger.warning("Image service breaker back to OPEN (trial call failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Image service breaker OPEN after %d consecutive failures",
                self.failure_count,
            )
            self.state = self.OPEN


# ══════════════════════════════════════════════════════════════════════════
# ImageKit client
# ══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class UploadResult:
    file_id: str
    file_path: str
    url: str
    width: Optional[int]
    height: Optional[int]


class ImageKitService:
    """
    Uploads pin images to ImageKit.

    One instance per application (built in create_app and kept on
    app.state) so that the breaker state and the connection pool are shared
    by all requests.
    """

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )
        logger.info(
            "ImageKitService initialized (folder=%s, breaker threshold=%d, recovery=%ds)",
            settings.imagekit_folder,
            settings.cb_failure_threshold,
            settings.cb_recovery_timeout,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.imagekit_private_key)

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                auth=(self.settings.imagekit_private_key, ""),
                timeout=self.settings.imagekit_timeout,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            retry=retry_if_exception_type(httpx.TransportError),
            stop=stop_after_attempt(self.settings.retry_max_attempts),
            wait=wait_exponential_jitter(
                initial=self.settings.retry_min_wait,
                max=self.settings.retry_max_wait,
                jitter=1,
            ),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    async def upload(self, content: bytes, filename: str, transformation: str) -> UploadResult:
        """
        Upload raw image bytes with a pre-transformation.

        Args:
            content:         original image bytes
            filename:        client filename; ImageKit appends a unique suffix
            transformation:  directive string, applied before storage

        Returns:
            UploadResult with the stored path and final dimensions.

        Raises:
            CircuitBreakerOpenError: recent failures tripped the breaker
            ImageServiceError:       not configured, network failure after
                                     retries, or an error response
        """
        if not self.is_configured:
            raise ImageServiceError(
                message="Image service is not configured",
                error="IMAGEKIT_PRIVATE_KEY is empty",
            )

        self.circuit_breaker.can_execute()

        data = {
            "fileName": filename,
            "folder": self.settings.imagekit_folder,
            "useUniqueFileName": "true",
            "transformation": json.dumps({"pre": transformation}),
        }
        start_time = time.perf_counter()

        try:
            async for attempt in self._retrying():
                with attempt:
                    response = await self.client.post(
                        self.settings.imagekit_upload_url,
                        data=data,
                        files={"file": (filename, content)},
                    )
        except httpx.HTTPError as e:
            self.circuit_breaker.record_failure()
            logger.error("ImageKit upload failed after retries: %s", str(e))
            raise ImageServiceError(
                message="Image upload failed",
                error=str(e) or type(e).__name__,
            )

        duration_ms = (time.perf_counter() - start_time) * 1000

        if response.status_code >= 400:
            error_text = self._error_text(response)
            if response.status_code >= 500:
                self.circuit_breaker.record_failure()
            logger.warning(
                "ImageKit rejected upload (%d) in %.0fms: %s",
                response.status_code,
                duration_ms,
                error_text,
            )
            raise ImageServiceError(
                message="Image upload failed",
                error=error_text,
                context={"status_code": response.status_code},
            )

        self.circuit_breaker.record_success()
        body = response.json()
        logger.info(
            "ImageKit upload stored %s (%sx%s) in %.0fms",
            body.get("filePath"),
            body.get("width"),
            body.get("height"),
            duration_ms,
        )
        return UploadResult(
            file_id=body.get("fileId", ""),
            file_path=body.get("filePath", ""),
            url=body.get("url", ""),
            width=body.get("width"),
            height=body.get("height"),
        )

    async def delete_file(self, file_id: str) -> None:
        """
        Best-effort removal of an uploaded file.

        Used when the pin could not be persisted after a successful upload.
        Failures are logged, never raised: the caller is already handling
        the original error.
        """
        if not file_id:
            return
        try:
            response = await self.client.delete(f"{self.settings.imagekit_api_url}/files/{file_id}")
            if response.status_code >= 400:
                logger.warning(
                    "Could not delete orphaned upload %s: HTTP %d",
                    file_id,
                    response.status_code,
                )
            else:
                logger.info("Deleted orphaned upload %s", file_id)
        except httpx.HTTPError as e:
            logger.warning("Could not delete orphaned upload %s: %s", file_id, str(e))

    @staticmethod
    def _error_text(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return f"HTTP {response.status_code}"
