"""
Inquiry Responder - Main FastAPI Application

Watches the mailbox for rental inquiry notifications and answers them:
- Poller (find new inquiries on a cron schedule)
- Queue (one inquiry in flight at a time)
- Orchestrator (extract from the portal, generate a reply, deliver or ask for approval)
- Store (inquiry records and audit log)
"""
import os
import logging
from datetime import datetime
from contextlib import asynccontextmanager
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Query

from inquiry_responder import __version__
from inquiry_responder.config import Settings, get_settings
from inquiry_responder.database import DatabaseManager, get_database_manager
from inquiry_responder.mail_client import get_mail_client
from inquiry_responder.message_queue import InquiryQueue
from inquiry_responder.models import (
    AuditLogEntry,
    HealthCheckResponse,
    InquiryResponse,
    InquiryStatus,
    StoreStats,
    SystemStatusResponse
)
from inquiry_responder.notifier import Notifier, get_notifier
from inquiry_responder.orchestrator import InquiryOrchestrator
from inquiry_responder.poller import InquiryPoller
from inquiry_responder.portal_client import PortalClient, get_portal_client
from inquiry_responder.reply_generator import ReplyGenerator, get_reply_generator

load_dotenv()

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


class Components:
    """Everything the service runs, built once at startup"""

    def __init__(
        self,
        settings: Settings,
        store: DatabaseManager,
        queue: InquiryQueue,
        poller: InquiryPoller,
        orchestrator: InquiryOrchestrator,
        portal: PortalClient,
        generator: ReplyGenerator,
        notifier: Notifier
    ):
        self.settings = settings
        self.store = store
        self.queue = queue
        self.poller = poller
        self.orchestrator = orchestrator
        self.portal = portal
        self.generator = generator
        self.notifier = notifier


def build_components(settings: Settings) -> Components:
    """
    Wire up the service from settings.

    Args:
        settings: Runtime settings

    Returns:
        Components with the queue attached to the orchestrator
    """
    store = get_database_manager(settings)
    notifier = get_notifier(settings)
    portal = get_portal_client(settings)
    generator = get_reply_generator(settings)
    queue = InquiryQueue(max_retries=settings.max_retries)

    orchestrator = InquiryOrchestrator(
        store=store,
        queue=queue,
        portal=portal,
        generator=generator,
        notifier=notifier,
        auto_send=settings.auto_send,
        timeouts={
            "extract": settings.extract_timeout,
            "generate": settings.generate_timeout,
            "deliver": settings.deliver_timeout,
            "approval": settings.notify_timeout,
        },
        retry_backoff=settings.retry_backoff_seconds
    )
    queue.set_dispatcher(orchestrator.dispatch)

    poller = InquiryPoller(
        mail_client=get_mail_client(settings),
        store=store,
        queue=queue,
        notifier=notifier,
        mail_filter=settings.mail_filter,
        schedule=settings.poll_schedule,
        test_mode=settings.test_mode,
        test_sender_name=settings.test_sender_name
    )

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


def log_safety_switches(settings: Settings) -> None:
    """Log the switches that decide whether the service can act on real tenants"""
    if settings.test_mode:
        logger.warning(
            f"TEST MODE enabled: only processing inquiries from '{settings.test_sender_name}'"
            if settings.test_sender_name else
            "TEST MODE enabled with no TEST_SENDER_NAME: every inquiry will be ignored"
        )
    else:
        logger.info("Test mode disabled: processing all inquiries")

    if settings.auto_send:
        logger.warning("AUTO_SEND enabled: replies are delivered without review")
    else:
        logger.info("AUTO_SEND disabled: replies are sent to the operator for approval")

    logger.info(f"Portal session mode: {'headless' if settings.headless else 'headed'}")


# Global state
components = None
start_time = datetime.utcnow()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown"""
    global components

    # Startup
    logger.info("Starting Inquiry Responder service...")

    try:
        settings = get_settings()
        log_safety_switches(settings)
        components = build_components(settings)
        components.poller.start()
        logger.info("Inquiry Responder service started successfully")
    except Exception as e:
        logger.error(f"Failed to start Inquiry Responder service: {e}")
        raise

    yield

    # Shutdown
    logger.info("Shutting down Inquiry Responder service...")
    components.poller.stop()
    await components.orchestrator.shutdown()
    components.queue.clear()
    await components.portal.release_session()
    components.store.close()
    components = None
    logger.info("Inquiry Responder service stopped")


# Create FastAPI app
app = FastAPI(
    title="Rental Inquiry Responder",
    description="Answers rental inquiries arriving by email",
    version=__version__,
    lifespan=lifespan
)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": "Rental Inquiry Responder",
        "version": __version__,
        "status": "running"
    }


@app.get("/status", response_model=SystemStatusResponse)
async def get_status():
    """
    Get queue, poller and store status

    Returns:
        Snapshot of the running system
    """
    try:
        return SystemStatusResponse(
            queue=components.queue.status(),
            poller=components.poller.status(),
            store=StoreStats(**components.store.stats()),
            recent_inquiries=[
                InquiryResponse.model_validate(inquiry)
                for inquiry in components.store.recent(10)
            ]
        )
    except Exception as e:
        logger.error(f"Error getting status: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/health", response_model=HealthCheckResponse)
async def health_check():
    """
    Health check endpoint

    Returns per-dependency health; any unhealthy dependency makes the
    service degraded.
    """
    services = {
        "store": components.store.ping(),
        "generation_service": await components.generator.health_check(),
        "poller": components.poller.is_running,
        "queue": True,
    }
    uptime = (datetime.utcnow() - start_time).total_seconds()

    return HealthCheckResponse(
        status="healthy" if all(services.values()) else "degraded",
        service="inquiry-responder",
        services=services,
        uptime_seconds=uptime
    )


@app.get("/inquiries", response_model=List[InquiryResponse])
async def list_inquiries(
    limit: int = Query(10, ge=1, le=100),
    status: Optional[InquiryStatus] = None
):
    """
    Get the most recent inquiries, optionally only those in one status

    Args:
        limit: Maximum number of inquiries to return
        status: Only return inquiries in this status

    Returns:
        Inquiries, newest first
    """
    try:
        if status is not None:
            inquiries = components.store.by_status(status, limit=limit)
        else:
            inquiries = components.store.recent(limit)
        return [InquiryResponse.model_validate(i) for i in inquiries]
    except Exception as e:
        logger.error(f"Error listing inquiries: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/inquiries/{external_id}", response_model=InquiryResponse)
async def get_inquiry(external_id: str):
    """
    Get a single inquiry

    Args:
        external_id: Mail provider message ID

    Returns:
        Inquiry record
    """
    inquiry = components.store.get(external_id)
    if not inquiry:
        raise HTTPException(status_code=404, detail="Inquiry not found")
    return InquiryResponse.model_validate(inquiry)


@app.get("/inquiries/{external_id}/audit", response_model=List[AuditLogEntry])
async def get_inquiry_audit(external_id: str):
    """
    Get the status history of an inquiry

    Args:
        external_id: Mail provider message ID

    Returns:
        Audit log entries, oldest first
    """
    if not components.store.exists(external_id):
        raise HTTPException(status_code=404, detail="Inquiry not found")
    return [AuditLogEntry.model_validate(e) for e in components.store.audit_log(external_id)]


@app.post("/check")
async def trigger_check():
    """
    Run a mailbox check now

    Returns:
        Number of inquiries queued
    """
    queued = await components.poller.check()
    return {"message": "Check completed", "queued": queued}


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port)
