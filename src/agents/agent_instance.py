"""Model instance used by the hearth dispatcher.

The model is created lazily so importing the agent package never needs
credentials; tests pass their own model to the dispatcher instead.
"""

import logging

from pydantic_ai.models import Model
from pydantic_ai.models.openrouter import OpenRouterModel, OpenRouterModelSettings
from pydantic_ai.providers.openrouter import OpenRouterProvider

from src.core.config import settings


logger = logging.getLogger(__name__)


class _ModelState:
    """Singleton state for the model instance."""

    instance: Model | None = None


def _create_model() -> Model:
    """Create the OpenRouter model (called once during initialization)."""
    api_key = settings.require_credential("openrouter_api_key", "OpenRouter API key")
    provider = OpenRouterProvider(api_key=api_key)

    # Configure provider routing if specified
    model_settings: OpenRouterModelSettings | None = None
    if settings.model_provider:
        model_settings = OpenRouterModelSettings(openrouter_provider={"only": [settings.model_provider]})

    logger.info("Creating model", extra={"model_id": settings.model_id, "provider": settings.model_provider})
    return OpenRouterModel(
        model_name=settings.model_id,
        provider=provider,
        settings=model_settings,
    )


def get_model() -> Model:
    """Get or create the model instance."""
    if _ModelState.instance is None:
        _ModelState.instance = _create_model()
    return _ModelState.instance
