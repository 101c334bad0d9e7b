"""External service clients."""

from .generation import (
    ContentGenerationService,
    ZhipuGenerationService,
    GenerationSettings,
    GenerationRequest,
    GenerationResponse,
    GeneratedContent,
)

__all__ = [
    "ContentGenerationService",
    "ZhipuGenerationService",
    "GenerationSettings",
    "GenerationRequest",
    "GenerationResponse",
    "GeneratedContent",
]
