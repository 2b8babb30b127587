"""
Test data builders
"""
from inquiry_responder.models import InquiryCreate, QueuedItem


def make_item(external_id: str, tenant_name: str = "Nancy E", **kwargs) -> QueuedItem:
    """Helper to create a queued inquiry"""
    return QueuedItem(
        external_id=external_id,
        tenant_name=tenant_name,
        tenant_message=kwargs.pop("tenant_message", f"Booking Inquiry from {tenant_name}"),
        **kwargs
    )


def make_inquiry(external_id: str, tenant_name: str = "Nancy E", **kwargs) -> InquiryCreate:
    """Helper to create an inquiry record"""
    return InquiryCreate(
        external_id=external_id,
        tenant_name=tenant_name,
        tenant_message=kwargs.pop("tenant_message", f"Booking Inquiry from {tenant_name}"),
        **kwargs
    )
