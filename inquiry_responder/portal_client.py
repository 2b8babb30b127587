"""
Portal Automation Client

Talks to the portal automation service, which owns the single authenticated
browser session used to read inquiries and post replies on the listing portal.
Only one inquiry may use the session at a time; callers must release it when
they are done.
"""
import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from inquiry_responder.config import Settings
from inquiry_responder.errors import AuthExpiredError, DeliveryError, ExtractionError
from inquiry_responder.models import ExtractedInquiry

logger = logging.getLogger(__name__)

AUTH_FAILURE_CODES = (401, 403)


class PortalClient:
    """Client for the portal automation service"""

    def __init__(
        self,
        base_url: str,
        api_token: Optional[str] = None,
        headless: bool = True,
        timeout: int = 120
    ):
        """
        Initialize portal client.

        Args:
            base_url: Base URL of the portal automation service
            api_token: Bearer token for the service, if it requires one
            headless: Run the browser session without a visible window
            timeout: Request timeout in seconds (page loads are slow)
        """
        self.base_url = base_url.rstrip('/')
        self.headless = headless
        self.timeout = timeout
        self.headers = {"Authorization": f"Bearer {api_token}"} if api_token else {}

    async def extract_latest(self) -> ExtractedInquiry:
        """
        Open the session if needed and read the most recent inquiry.

        Returns:
            Tenant name, message text and conversation reference

        Raises:
            AuthExpiredError: If the portal session is no longer logged in
            ExtractionError: If the inquiry could not be located or read
        """
        logger.info("Extracting latest inquiry from portal...")
        try:
            async with httpx.AsyncClient(timeout=self.timeout, headers=self.headers) as client:
                response = await client.post(
                    f"{self.base_url}/session/inquiries/latest",
                    json={"headless": self.headless}
                )
        except httpx.HTTPError as e:
            raise ExtractionError(f"Portal service unreachable: {e}") from e

        self._raise_for_auth(response)
        if response.status_code == 404:
            raise ExtractionError("No inquiry conversations found on portal")
        if response.is_error:
            raise ExtractionError(f"Portal extraction failed: {response.status_code} {response.text[:200]}")

        data = response.json()
        if data.get("login_required"):
            raise AuthExpiredError("Portal redirected to login page")

        try:
            inquiry = ExtractedInquiry(**data)
        except ValidationError as e:
            raise ExtractionError(f"Portal returned an unexpected payload: {e}") from e
        if not inquiry.tenant_message.strip():
            raise ExtractionError("Could not extract tenant message - page structure may have changed")

        logger.info(f"Extracted inquiry from {inquiry.tenant_name}: {inquiry.tenant_message[:100]}")
        return inquiry

    async def deliver(self, conversation_reference: Optional[str], text: str) -> None:
        """
        Post a reply into a portal conversation.

        Args:
            conversation_reference: Handle returned by extract_latest()
            text: Reply text

        Raises:
            AuthExpiredError: If the portal session is no longer logged in
            DeliveryError: If the reply could not be sent
        """
        logger.info(f"Sending reply to portal conversation {conversation_reference}")
        try:
            async with httpx.AsyncClient(timeout=self.timeout, headers=self.headers) as client:
                response = await client.post(
                    f"{self.base_url}/session/reply",
                    json={"conversation_reference": conversation_reference, "text": text}
                )
        except httpx.HTTPError as e:
            raise DeliveryError(f"Portal service unreachable: {e}") from e

        self._raise_for_auth(response)
        if response.is_error:
            raise DeliveryError(f"Portal delivery failed: {response.status_code} {response.text[:200]}")

        data = response.json() if response.content else {}
        if data.get("login_required"):
            raise AuthExpiredError("Portal redirected to login page")

        logger.info("Reply delivered to portal")

    async def release_session(self) -> None:
        """Close the browser session. Safe to call when none is open."""
        try:
            async with httpx.AsyncClient(timeout=30, headers=self.headers) as client:
                response = await client.post(f"{self.base_url}/session/release")
                response.raise_for_status()
            logger.debug("Portal session released")
        except httpx.HTTPError as e:
            logger.error(f"Error releasing portal session: {e}")

    async def health_check(self) -> bool:
        """
        Check if the portal automation service is healthy.

        Returns:
            True if healthy, False otherwise
        """
        try:
            async with httpx.AsyncClient(timeout=5, headers=self.headers) as client:
                response = await client.get(f"{self.base_url}/health")
                return response.status_code == 200
        except Exception as e:
            logger.error(f"Portal service health check failed: {e}")
            return False

    @staticmethod
    def _raise_for_auth(response: httpx.Response) -> None:
        if response.status_code in AUTH_FAILURE_CODES:
            raise AuthExpiredError(f"Portal session rejected ({response.status_code})")


def get_portal_client(settings: Settings) -> PortalClient:
    """
    Get portal client instance from settings.

    Returns:
        PortalClient instance
    """
    return PortalClient(
        base_url=settings.portal_service_url,
        api_token=settings.portal_api_token,
        headless=settings.headless,
        timeout=int(max(settings.extract_timeout, settings.deliver_timeout)),
    )
