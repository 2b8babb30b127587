"""
Claude API client wrapper using Anthropic SDK
"""
import logging
from pathlib import Path
from typing import Optional
from anthropic import AsyncAnthropic, APIError, APIConnectionError, RateLimitError

from inquiry_responder.config import Settings
from inquiry_responder.errors import GenerationError
from inquiry_responder.prompt_templates import PromptTemplates

logger = logging.getLogger(__name__)


class ReplyGenerator:
    """Generates tenant replies with the Claude API"""

    DEFAULT_MODEL = "claude-3-5-sonnet-20241022"
    MAX_TOKENS = 1024
    TEMPERATURE = 0.7

    def __init__(
        self,
        api_key: Optional[str],
        model: Optional[str] = None,
        property_context_path: Optional[str] = None,
        client: Optional[AsyncAnthropic] = None
    ):
        """
        Initialize the generator.

        Args:
            api_key: Anthropic API key
            model: Model name (defaults to DEFAULT_MODEL)
            property_context_path: Text/JSON file with property details for the prompt
            client: Preconfigured SDK client, mainly for tests
        """
        if client is None and not api_key:
            raise ValueError("ANTHROPIC_API_KEY must be provided or set in environment")

        self.client = client or AsyncAnthropic(api_key=api_key)
        self.model = model or self.DEFAULT_MODEL
        self.property_context_path = property_context_path

    def load_property_context(self) -> Optional[str]:
        """Read the property details file, if one is configured"""
        if not self.property_context_path:
            return None
        try:
            return Path(self.property_context_path).read_text(encoding="utf-8")
        except OSError as e:
            logger.error(f"Error reading property context: {e}")
            return None

    async def generate(
        self,
        tenant_name: str,
        tenant_message: str,
        tenant_email: Optional[str] = None
    ) -> str:
        """
        Generate a reply to a tenant inquiry.

        Args:
            tenant_name: Tenant's display name
            tenant_message: Full inquiry text
            tenant_email: Tenant's email, if known

        Returns:
            Reply text

        Raises:
            GenerationError: If the API call fails or returns no text
        """
        prompt = PromptTemplates.build_reply_prompt(
            tenant_name=tenant_name,
            tenant_message=tenant_message,
            tenant_email=tenant_email,
            property_context=self.load_property_context()
        )

        logger.info(f"Generating reply for {tenant_name}")
        logger.debug(f"Prompt: {prompt[:200]}...")

        try:
            message = await self.client.messages.create(
                model=self.model,
                max_tokens=self.MAX_TOKENS,
                temperature=self.TEMPERATURE,
                system=PromptTemplates.SYSTEM_PROMPT,
                messages=[
                    {"role": "user", "content": prompt}
                ]
            )
        except RateLimitError as e:
            logger.error(f"Rate limit exceeded: {e}")
            raise GenerationError(f"LLM rate limit exceeded: {e}") from e
        except APIConnectionError as e:
            logger.error(f"Connection error to Claude API: {e}")
            raise GenerationError(f"LLM connection failed: {e}") from e
        except APIError as e:
            logger.error(f"Claude API error: {e}")
            raise GenerationError(f"LLM API error: {e}") from e

        reply_text = "".join(
            block.text for block in message.content if getattr(block, "type", None) == "text"
        ).strip()

        if not reply_text:
            raise GenerationError("LLM API returned empty response")

        tokens_used = message.usage.input_tokens + message.usage.output_tokens
        logger.info(f"Generated reply: {len(reply_text)} chars, {tokens_used} tokens")
        return reply_text

    async def health_check(self) -> bool:
        """
        Check if Claude API is accessible.

        Returns:
            True if API is accessible, False otherwise
        """
        try:
            await self.client.models.list(limit=1)
            return True
        except Exception as e:
            logger.error(f"Claude API health check failed: {e}")
            return False


def get_reply_generator(settings: Settings) -> ReplyGenerator:
    """
    Get reply generator instance from settings.

    Returns:
        ReplyGenerator instance
    """
    return ReplyGenerator(
        api_key=settings.anthropic_api_key,
        model=settings.anthropic_model,
        property_context_path=settings.property_context_path
    )
