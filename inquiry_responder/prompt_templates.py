"""
Prompt templates for rental inquiry replies
"""
from typing import Optional


class PromptTemplates:
    """Builds prompts for reply generation"""

    SYSTEM_PROMPT = """You are a professional property manager replying to rental inquiries on a furnished-rental listing site.
Your goal is to write warm, helpful replies that answer the tenant's questions using the property details you are given.

Key principles:
- Be concise (2-4 paragraphs maximum)
- Use a conversational, welcoming tone that stays professional
- Never invent facts about the property that are not in the property details
- Never use placeholders like [Your Name]
- Do not include a signature line, the platform adds one
- Generate ONLY the reply text, no explanations or meta-commentary"""

    INSTRUCTIONS = [
        "Answer any specific questions the tenant asked",
        "Highlight relevant amenities that match their needs",
        "If they mention pets, healthcare work, or specific requirements, address those directly",
        "If availability is mentioned, remind them to check current dates on the listing",
        "If pricing questions arise, be clear about what's included",
        "End with a clear call-to-action, such as inviting a booking request or further questions",
    ]

    @classmethod
    def build_reply_prompt(
        cls,
        tenant_name: str,
        tenant_message: str,
        tenant_email: Optional[str] = None,
        property_context: Optional[str] = None
    ) -> str:
        """
        Build the user prompt for a tenant reply.

        Args:
            tenant_name: Tenant's display name
            tenant_message: Full inquiry text
            tenant_email: Tenant's email, if known
            property_context: Property details to ground the reply

        Returns:
            Prompt string
        """
        prompt_parts = ["TENANT INFORMATION:", f"- Name: {tenant_name}"]
        if tenant_email:
            prompt_parts.append(f"- Email: {tenant_email}")

        prompt_parts.append("")
        prompt_parts.append("TENANT'S MESSAGE:")
        prompt_parts.append(tenant_message.strip())

        if property_context:
            prompt_parts.append("")
            prompt_parts.append("PROPERTY DETAILS:")
            prompt_parts.append(property_context.strip())

        prompt_parts.append("")
        prompt_parts.append("INSTRUCTIONS:")
        for number, instruction in enumerate(cls.INSTRUCTIONS, start=1):
            prompt_parts.append(f"{number}. {instruction}")

        prompt_parts.append("")
        prompt_parts.append("Generate the response now:")

        return "\n".join(prompt_parts)
