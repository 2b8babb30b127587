"""
Tests for the HTTP surface
"""
import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, MagicMock, patch

from inquiry_responder.config import Settings
from inquiry_responder.main import Components, app
from inquiry_responder.message_queue import InquiryQueue
from inquiry_responder.models import InquiryStatus, PollerStatus
from inquiry_responder.orchestrator import InquiryOrchestrator
from inquiry_responder.poller import InquiryPoller
from tests.helpers import make_inquiry, make_item


@pytest.fixture
def poller():
    mock = MagicMock(spec=InquiryPoller)
    mock.is_running = True
    mock.status.return_value = PollerStatus(
        is_running=True,
        schedule="*/1 * * * *",
        filter='X-GM-RAW "from:furnishedfinder.com"'
    )
    mock.check = AsyncMock(return_value=2)
    return mock


@pytest.fixture
def components(store, portal, generator, notifier, poller):
    settings = Settings()
    queue = InquiryQueue(max_retries=settings.max_retries)
    orchestrator = InquiryOrchestrator(store, queue, portal, generator, notifier)
    return Components(
        settings=settings,
        store=store,
        queue=queue,
        poller=poller,
        orchestrator=orchestrator,
        portal=portal,
        generator=generator,
        notifier=notifier
    )


@pytest.fixture
def client(components):
    """Test client with the service wired to in-memory components"""
    with patch("inquiry_responder.main.build_components", return_value=components):
        with TestClient(app) as test_client:
            yield test_client


class TestRoot:
    """Service banner"""

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "running"


class TestLifespan:
    """Startup and shutdown"""

    def test_poller_started_and_stopped(self, components, poller):
        with patch("inquiry_responder.main.build_components", return_value=components):
            with TestClient(app):
                poller.start.assert_called_once()
            poller.stop.assert_called_once()

    def test_shutdown_clears_queue_and_releases_session(self, components, portal):
        with patch("inquiry_responder.main.build_components", return_value=components):
            with TestClient(app):
                components.queue.enqueue(make_item("m1"))

        assert components.queue.size == 0
        portal.release_session.assert_awaited()

    def test_shutdown_stops_in_flight_processing(self, components):
        shutdown = AsyncMock()
        with patch.object(components.orchestrator, "shutdown", shutdown):
            with patch("inquiry_responder.main.build_components", return_value=components):
                with TestClient(app):
                    shutdown.assert_not_awaited()

        shutdown.assert_awaited_once()


class TestStatus:
    """System status"""

    def test_status(self, client, components):
        components.store.insert(make_inquiry("m1"))
        components.store.insert(make_inquiry("m2", tenant_name="John Smith"))
        components.queue.enqueue(make_item("m2", tenant_name="John Smith"))

        response = client.get("/status")

        assert response.status_code == 200
        data = response.json()
        assert data["queue"]["size"] == 1
        assert data["queue"]["items"][0]["external_id"] == "m2"
        assert data["poller"]["is_running"] is True
        assert data["poller"]["schedule"] == "*/1 * * * *"
        assert data["store"] == {"total": 2, "pending": 2, "processing": 0, "sent": 0, "failed": 0}
        assert len(data["recent_inquiries"]) == 2

    def test_status_has_no_side_effects(self, client, components, poller):
        client.get("/status")
        client.get("/health")

        poller.check.assert_not_awaited()
        assert components.store.stats()["total"] == 0


class TestHealth:
    """Liveness"""

    def test_healthy(self, client):
        data = client.get("/health").json()

        assert data["status"] == "healthy"
        assert data["services"] == {
            "store": True,
            "generation_service": True,
            "poller": True,
            "queue": True,
        }

    def test_degraded(self, client, generator):
        generator.health_check.return_value = False

        data = client.get("/health").json()

        assert data["status"] == "degraded"
        assert data["services"]["generation_service"] is False


class TestInquiries:
    """Inquiry lookups"""

    def test_list(self, client, components):
        for external_id in ("m1", "m2", "m3"):
            components.store.insert(make_inquiry(external_id))

        response = client.get("/inquiries", params={"limit": 2})

        assert response.status_code == 200
        assert [i["external_id"] for i in response.json()] == ["m3", "m2"]

    def test_list_by_status(self, client, components):
        for external_id in ("m1", "m2", "m3"):
            components.store.insert(make_inquiry(external_id))
        components.store.update_status("m2", InquiryStatus.PROCESSING)
        components.store.update_status("m2", InquiryStatus.FAILED, error="boom")

        response = client.get("/inquiries", params={"status": "failed"})

        assert response.status_code == 200
        body = response.json()
        assert [i["external_id"] for i in body] == ["m2"]
        assert body[0]["error"] == "boom"

    def test_list_unknown_status(self, client):
        response = client.get("/inquiries", params={"status": "archived"})
        assert response.status_code == 422

    def test_get(self, client, components):
        components.store.insert(make_inquiry("m1"))

        response = client.get("/inquiries/m1")

        assert response.status_code == 200
        assert response.json()["status"] == InquiryStatus.PENDING.value

    def test_get_unknown(self, client):
        assert client.get("/inquiries/missing").status_code == 404

    def test_audit(self, client, components):
        components.store.insert(make_inquiry("m1"))
        components.store.update_status("m1", InquiryStatus.PROCESSING)

        response = client.get("/inquiries/m1/audit")

        assert [e["to_status"] for e in response.json()] == ["pending", "processing"]

    def test_audit_unknown(self, client):
        assert client.get("/inquiries/missing/audit").status_code == 404


class TestCheck:
    """Manual poll trigger"""

    def test_trigger(self, client, poller):
        response = client.post("/check")

        assert response.status_code == 200
        assert response.json()["queued"] == 2
        poller.check.assert_awaited_once()
