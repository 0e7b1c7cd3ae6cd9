"""
Prompt Templates for the chat assistant.

System prompts for reply generation and the fixed replies used when the
reply generator is unavailable.
"""

from enum import Enum
from typing import Optional

from lead_scoring.lead_info import is_default_service


class PromptType(Enum):
    """Types of prompts."""
    GENERAL = "general"


class PromptTemplates:
    """
    Manages prompt templates for the assistant.

    Placeholders {assistant} and {brand} are filled per deployment.
    """

    SYSTEM_PROMPTS = {
        PromptType.GENERAL: """You are {assistant}, the AI assistant for {brand}. You help potential clients understand our services and gather information about their needs.

Company Information:
{brand} is a full-service digital solutions company offering:
- Web Development & Design
- IT Services & Networking
- AI Integration & Tools

We specialize in:
- Scalable web applications
- Workflow automation
- AI-driven tools
- System architecture
- SEO optimization
- Custom software development

Guidelines:
1. Be helpful, professional, and friendly
2. Ask clarifying questions about their project needs
3. Gather information about: service type, budget, timeline, company details
4. If they seem interested, encourage them to provide contact information
5. Keep responses concise but informative
6. Always represent {brand} professionally""",
    }

    SERVICES_LIST = """• Web Development & Design
• IT Services & Support
• Networking Solutions
• AI Integration"""

    FALLBACK_REPLY = """Hello! I'm {assistant} from {brand}. I'm currently experiencing technical difficulties with my AI services, but I'd be happy to help you with your web development, IT services, networking, and AI solutions needs.

For immediate assistance, please contact us:
📞 Phone: {phone}
📧 Email: {email}

We offer comprehensive packages for businesses of all sizes, including:
{services}

What specific services are you interested in?"""

    PERSONALIZED_FALLBACK_REPLY = """Hi there! Thanks for reaching out to {brand}. I can see you're interested in {service}.

I'd love to help you with your project! While I'm experiencing some technical difficulties with my AI services right now, I can definitely assist you with:

{services}

For immediate assistance, please contact us:
📞 Phone: {phone}
📧 Email: {email}"""

    @classmethod
    def get_system_prompt(
        cls,
        prompt_type: PromptType = PromptType.GENERAL,
        brand_name: str = "Kingdom Design House",
        assistant_name: str = "Jarvis",
        custom_instructions: Optional[str] = None
    ) -> str:
        """
        Get system prompt for a given type.

        Args:
            prompt_type: Type of prompt
            brand_name: Company name
            assistant_name: Assistant persona name
            custom_instructions: Additional custom instructions

        Returns:
            Formatted system prompt
        """
        prompt = cls.SYSTEM_PROMPTS.get(prompt_type, cls.SYSTEM_PROMPTS[PromptType.GENERAL])
        prompt = prompt.format(brand=brand_name, assistant=assistant_name)

        if custom_instructions:
            prompt += f"\n\nAdditional instructions:\n{custom_instructions}"

        return prompt

    @classmethod
    def fallback_reply(
        cls,
        brand_name: str,
        assistant_name: str,
        phone: str,
        email: str,
        service_requested: Optional[str] = None
    ) -> str:
        """Fixed reply carrying the company's phone and email."""
        if service_requested and not is_default_service(service_requested):
            return cls.PERSONALIZED_FALLBACK_REPLY.format(
                brand=brand_name,
                service=service_requested,
                services=cls.SERVICES_LIST,
                phone=phone,
                email=email,
            )
        return cls.FALLBACK_REPLY.format(
            assistant=assistant_name,
            brand=brand_name,
            services=cls.SERVICES_LIST,
            phone=phone,
            email=email,
        )
