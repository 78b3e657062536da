"""
Extraction providers for pdf2xls.

Providers turn a document into a raw field tree. Polling-document providers
talk to HTTP document APIs; the assistant-thread provider runs an OpenAI
assistant over the uploaded file.
"""

from typing import Optional

from tenacity import wait_fixed

from pdf2xls.config import Settings, get_settings
from pdf2xls.extraction.assistant import AssistantThreadProvider
from pdf2xls.extraction.base import ExtractionProvider, poll_until_done
from pdf2xls.extraction.nudelta import NuDeltaProvider
from pdf2xls.extraction.polling import PollingDocumentProvider, PollingDocumentService
from pdf2xls.extraction.whisperer import TextRenderer, WhispererService
from pdf2xls.models import ProviderType


def create_provider(
    settings: Optional[Settings] = None,
    provider_type: Optional[ProviderType] = None,
) -> ExtractionProvider:
    """
    Create the configured extraction provider.

    Args:
        settings: Settings to use (defaults to the global settings)
        provider_type: Provider to create (defaults to ``preferred_api``)
    """
    settings = settings or get_settings()
    provider_type = provider_type or ProviderType.parse(settings.preferred_api)

    if provider_type is ProviderType.NUDELTA:
        return NuDeltaProvider(
            username=settings.nudelta_username,
            password=settings.nudelta_password,
            base_url=settings.nudelta_base_url,
            poll_attempts=settings.nudelta_poll_attempts,
            timeout=settings.http_timeout,
        )

    return AssistantThreadProvider(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        poll_attempts=settings.assistant_poll_attempts,
        message_attempts=settings.assistant_poll_attempts,
    )


def create_text_renderer(settings: Optional[Settings] = None) -> Optional[TextRenderer]:
    """Create the fallback text renderer, or None when no Whisperer key is set."""
    settings = settings or get_settings()
    if not settings.whisperer_api_key:
        return None

    service = WhispererService(
        api_key=settings.whisperer_api_key,
        base_url=settings.whisperer_base_url,
        poll_attempts=settings.whisperer_poll_attempts,
        poll_wait=wait_fixed(settings.whisperer_poll_interval),
        timeout=max(settings.http_timeout, 120.0),
    )
    return TextRenderer(service)


__all__ = [
    "AssistantThreadProvider",
    "ExtractionProvider",
    "NuDeltaProvider",
    "PollingDocumentProvider",
    "PollingDocumentService",
    "TextRenderer",
    "WhispererService",
    "create_provider",
    "create_text_renderer",
    "poll_until_done",
]
