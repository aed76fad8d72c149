"""
Pinboard Backend — ImageKit Service Unit Tests (Mocked Transport)
===================================================================

What:  CircuitBreaker state machine and ImageKitService against an
       httpx.MockTransport, so no request leaves the process.

What we test:
    ✅ Circuit breaker opens at threshold, rejects, half-opens, closes
    ✅ Upload request shape: basic auth, folder, pre-transformation JSON
    ✅ Transport errors are retried; 4xx/5xx are not
    ✅ Upstream error text is carried in ImageServiceError
    ✅ Orphan cleanup never raises
"""

import base64
import json
import time

import httpx
import pytest

from pinboard.exceptions import CircuitBreakerOpenError, ImageServiceError
from pinboard.services.imagekit_service import CircuitBreaker, ImageKitService

UPLOAD_OK = {
    "fileId": "abc123",
    "name": "photo_x1.png",
    "filePath": "/pins/photo_x1.png",
    "url": "https://ik.imagekit.io/pinboard-test/pins/photo_x1.png",
    "width": 1200,
    "height": 1800,
}


def make_service(settings, handler):
    return ImageKitService(settings, transport=httpx.MockTransport(handler))


class TestCircuitBreaker:
    """Tests for the CircuitBreaker resilience pattern."""

    def test_initial_state_is_closed(self):
        cb = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        assert cb.state == CircuitBreaker.CLOSED
        assert cb.failure_count == 0

    def test_stays_closed_under_threshold(self):
        cb = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        for _ in range(4):
            cb.record_failure()
        assert cb.state == CircuitBreaker.CLOSED
        assert cb.can_execute()

    def test_opens_at_threshold_and_rejects(self):
        cb = CircuitBreaker(failure_threshold=3, recovery_timeout=60)
        for _ in range(3):
            cb.record_failure()
        assert cb.state == CircuitBreaker.OPEN

        with pytest.raises(CircuitBreakerOpenError) as exc_info:
            cb.can_execute()
        assert 0 < exc_info.value.recovery_time <= 61

    def test_half_open_after_recovery_timeout(self):
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
        cb.record_failure()
        time.sleep(0.01)

        assert cb.can_execute()
        assert cb.state == CircuitBreaker.HALF_OPEN

    def test_failure_in_half_open_reopens(self):
        cb = CircuitBreaker(failure_threshold=5, recovery_timeout=0)
        cb.state = CircuitBreaker.HALF_OPEN
        cb.record_failure()
        assert cb.state == CircuitBreaker.OPEN

    def test_success_closes_and_resets(self):
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
        cb.record_failure()
        time.sleep(0.01)
        cb.can_execute()

        cb.record_success()
        assert cb.state == CircuitBreaker.CLOSED
        assert cb.failure_count == 0


class TestImageKitUpload:

    @pytest.mark.asyncio
    async def test_upload_success(self, test_settings):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["authorization"]
            seen["body"] = request.content
            return httpx.Response(200, json=UPLOAD_OK)

        service = make_service(test_settings, handler)
        result = await service.upload(b"\x89PNG fake", "photo.png", "w-1200,h-1800,cm-pad_resize,bg-ffffff")
        await service.aclose()

        assert result.file_id == "abc123"
        assert result.file_path == "/pins/photo_x1.png"
        assert (result.width, result.height) == (1200, 1800)

        assert seen["url"] == test_settings.imagekit_upload_url
        expected_auth = base64.b64encode(b"private_test_key:").decode()
        assert seen["auth"] == f"Basic {expected_auth}"

        body = seen["body"]
        assert b'name="folder"' in body and b"pins" in body
        assert b'name="file"; filename="photo.png"' in body
        assert json.dumps({"pre": "w-1200,h-1800,cm-pad_resize,bg-ffffff"}).encode() in body
        assert service.circuit_breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_transport_error_is_retried(self, test_settings):
        calls = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["count"] += 1
            if calls["count"] == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json=UPLOAD_OK)

        service = make_service(test_settings, handler)
        result = await service.upload(b"img", "photo.png", "w-1,h-1,bg-ffffff")

        assert calls["count"] == 2
        assert result.file_id == "abc123"

    @pytest.mark.asyncio
    async def test_transport_error_exhausts_retries(self, test_settings):
        calls = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["count"] += 1
            raise httpx.ConnectError("connection refused", request=request)

        service = make_service(test_settings, handler)
        with pytest.raises(ImageServiceError) as exc_info:
            await service.upload(b"img", "photo.png", "w-1,h-1,bg-ffffff")

        assert calls["count"] == test_settings.retry_max_attempts
        assert "connection refused" in exc_info.value.context["error"]
        assert service.circuit_breaker.failure_count == 1

    @pytest.mark.asyncio
    async def test_client_error_carries_upstream_message(self, test_settings):
        calls = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["count"] += 1
            return httpx.Response(400, json={"message": "Invalid transformation parameter"})

        service = make_service(test_settings, handler)
        with pytest.raises(ImageServiceError) as exc_info:
            await service.upload(b"img", "photo.png", "w-1,h-1,bg-zzz")

        assert calls["count"] == 1
        assert exc_info.value.context["error"] == "Invalid transformation parameter"
        assert exc_info.value.context["status_code"] == 400
        # A rejected request says nothing about the service's health
        assert service.circuit_breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_server_errors_open_the_breaker(self, test_settings):
        calls = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["count"] += 1
            return httpx.Response(503, text="upstream unavailable")

        service = make_service(test_settings, handler)
        for _ in range(test_settings.cb_failure_threshold):
            with pytest.raises(ImageServiceError):
                await service.upload(b"img", "photo.png", "w-1,h-1,bg-ffffff")

        assert service.circuit_breaker.state == CircuitBreaker.OPEN
        with pytest.raises(CircuitBreakerOpenError):
            await service.upload(b"img", "photo.png", "w-1,h-1,bg-ffffff")
        assert calls["count"] == test_settings.cb_failure_threshold

    @pytest.mark.asyncio
    async def test_unconfigured_service_fails_without_calling_out(self, test_settings):
        settings = test_settings.model_copy(update={"imagekit_private_key": ""})

        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        service = make_service(settings, handler)
        assert not service.is_configured
        with pytest.raises(ImageServiceError):
            await service.upload(b"img", "photo.png", "w-1,h-1,bg-ffffff")


class TestImageKitDelete:

    @pytest.mark.asyncio
    async def test_delete_calls_files_api(self, test_settings):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["url"] = str(request.url)
            return httpx.Response(204)

        service = make_service(test_settings, handler)
        await service.delete_file("abc123")

        assert seen["method"] == "DELETE"
        assert seen["url"] == f"{test_settings.imagekit_api_url}/files/abc123"

    @pytest.mark.asyncio
    async def test_delete_failures_are_swallowed(self, test_settings):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        service = make_service(test_settings, handler)
        # Must not raise
        await service.delete_file("abc123")
