"""
Pydantic models for the inquiry responder
"""
from datetime import datetime
from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, Field


class InquiryStatus(str, Enum):
    """Lifecycle status of an inquiry record"""
    PENDING = "pending"
    PROCESSING = "processing"
    SENT = "sent"
    FAILED = "failed"


class NotificationType(str, Enum):
    """Category of a mail notification"""
    NEW_INQUIRY = "NEW_INQUIRY"
    REPLY = "REPLY"
    UNKNOWN = "UNKNOWN"


# Inquiry Record Models
class InquiryCreate(BaseModel):
    """Model for inserting a new inquiry record"""
    external_id: str
    tenant_name: str
    tenant_email: Optional[str] = None
    tenant_message: str
    status: InquiryStatus = InquiryStatus.PENDING
    conversation_reference: Optional[str] = None


class InquiryResponse(BaseModel):
    """Model for inquiry record response"""
    id: int
    external_id: str
    tenant_name: str
    tenant_email: Optional[str]
    tenant_message: str
    generated_response: Optional[str]
    status: InquiryStatus
    created_at: datetime
    processed_at: Optional[datetime]
    error: Optional[str]
    conversation_reference: Optional[str]

    class Config:
        from_attributes = True


class AuditLogEntry(BaseModel):
    """Single status transition of an inquiry"""
    external_id: str
    from_status: Optional[str]
    to_status: str
    reason: Optional[str]
    error_details: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


# Queue Models
class QueuedItem(BaseModel):
    """Inquiry waiting in the processing queue (never persisted)"""
    external_id: str
    tenant_name: str
    tenant_email: Optional[str] = None
    tenant_message: str
    retry_count: int = Field(default=0, ge=0)
    enqueued_at: datetime = Field(default_factory=datetime.utcnow)


class QueueItemSummary(BaseModel):
    """Queue item as shown on the status surface"""
    external_id: str
    tenant_name: str
    retry_count: int
    enqueued_at: datetime


class QueueStatus(BaseModel):
    """Read-only snapshot of the queue"""
    size: int
    is_processing: bool
    active_id: Optional[str] = None
    items: List[QueueItemSummary]


# Mail Models
class MailSummary(BaseModel):
    """Message returned by a mailbox listing"""
    id: str
    subject: str = ""
    sender: str = ""
    date: Optional[str] = None


class Classification(BaseModel):
    """Result of classifying a notification subject and sender"""
    type: NotificationType
    name: Optional[str] = None
    email: Optional[str] = None
    inquiry_id: Optional[str] = None


# Portal Models
class ExtractedInquiry(BaseModel):
    """Inquiry as read from the listing portal"""
    tenant_name: str
    tenant_message: str
    conversation_reference: Optional[str] = None


# Status Surface Models
class PollerStatus(BaseModel):
    """Poller status"""
    is_running: bool
    schedule: str
    filter: str
    last_check_at: Optional[datetime] = None


class StoreStats(BaseModel):
    """Inquiry counts per status"""
    total: int = 0
    pending: int = 0
    processing: int = 0
    sent: int = 0
    failed: int = 0


class SystemStatusResponse(BaseModel):
    """Status query response"""
    queue: QueueStatus
    poller: PollerStatus
    store: StoreStats
    recent_inquiries: List[InquiryResponse] = Field(default_factory=list)


class HealthCheckResponse(BaseModel):
    """Liveness query response"""
    status: str
    service: str
    services: dict
    uptime_seconds: float
