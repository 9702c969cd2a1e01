"""
Lazily constructed OpenAI client shared by the AI services.
"""
from django.conf import settings
from openai import OpenAI

from apps.ai.exceptions import AIServiceError
from apps.core.observability import get_sanitized_logger

logger = get_sanitized_logger(__name__)

_client = None


def get_client():
    global _client
    if _client is None:
        if not settings.OPENAI_API_KEY:
            logger.error("OPENAI_API_KEY is not configured")
            raise AIServiceError("AI service is not configured (OPENAI_API_KEY missing)")
        logger.debug("Initializing OpenAI client")
        _client = OpenAI(
            api_key=settings.OPENAI_API_KEY,
            base_url=settings.OPENAI_BASE_URL,
            timeout=settings.AI_REQUEST_TIMEOUT_SECONDS,
        )
    return _client


def reset_client():
    """Drop the cached client (settings changed, or between tests)."""
    global _client
    _client = None
