"""Content generation service used by agent nodes."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import requests
from pydantic import BaseModel, Field

from ..core.exceptions import GenerationServiceError
from ..core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://open.bigmodel.cn/api/paas/v4"
DEFAULT_MODEL = "glm-4"
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 1000
NOT_CONFIGURED_MESSAGE = "content generation service is not configured, set an API key first"

AVAILABLE_MODELS = [
    "glm-4",
    "glm-4-0520",
    "glm-4-long",
    "glm-4-air",
    "glm-4-airx",
    "glm-4-flash",
]


class GenerationSettings(BaseModel):
    """Connection settings for the generation API."""
    api_key: str = Field("", description="Bearer token for the generation API")
    model: str = Field(DEFAULT_MODEL, description="Model used when a request names none")
    timeout: float = Field(30.0, gt=0, description="HTTP request timeout in seconds")
    base_url: str = Field(DEFAULT_BASE_URL, description="API base URL")


class GenerationRequest(BaseModel):
    """Prompt and sampling parameters for one generation call."""
    prompt: str = Field(..., min_length=1, description="Prompt text")
    model: Optional[str] = Field(None, description="Model name")
    temperature: float = Field(DEFAULT_TEMPERATURE, ge=0.0, le=1.0, description="Sampling temperature")
    max_tokens: int = Field(DEFAULT_MAX_TOKENS, ge=1, description="Completion token limit")


class GeneratedContent(BaseModel):
    content: str = Field(..., description="Generated text")


class GenerationResponse(BaseModel):
    """Uniform answer of the generation service; failures are values, not exceptions."""
    success: bool = Field(..., description="Whether generation succeeded")
    data: Optional[GeneratedContent] = Field(None, description="Generated content on success")
    error: Optional[str] = Field(None, description="Error message on failure")
    message: Optional[str] = Field(None, description="Informational message")

    @classmethod
    def failure(cls, error: str) -> "GenerationResponse":
        return cls(success=False, error=error)


class ContentGenerationService(ABC):
    """Contract between agent nodes and a text generation backend."""

    @abstractmethod
    def is_configured(self) -> bool:
        """Whether the service holds enough configuration to make calls."""

    @abstractmethod
    def set_config(self, settings: GenerationSettings) -> None:
        """Replace the service configuration."""

    @abstractmethod
    def get_config(self) -> Optional[GenerationSettings]:
        """Return the current configuration, if any."""

    @abstractmethod
    def generate(self, request: GenerationRequest) -> GenerationResponse:
        """Generate content for a prompt. Must not raise."""

    def list_models(self) -> List[str]:
        return list(AVAILABLE_MODELS)

    def validate_api_key(self, api_key: str) -> bool:
        """Cheap format check for an API key; no network call is made."""
        return bool(api_key) and len(api_key.strip()) > 10


class ZhipuGenerationService(ContentGenerationService):
    """Client for the Zhipu AI chat-completions API."""

    def __init__(self, settings: Optional[GenerationSettings] = None, session: Optional[requests.Session] = None):
        """Initialize the client.

        Args:
            settings: Optional initial settings; without an API key the service
                reports itself unconfigured
            session: Optional HTTP session, mainly for testing
        """
        self._settings = settings
        self._http = session or requests.Session()

    def set_config(self, settings: GenerationSettings) -> None:
        # Process-wide state, last write wins
        self._settings = settings
        logger.info(f"Generation service configuration updated (model={settings.model})")

    def get_config(self) -> Optional[GenerationSettings]:
        return self._settings

    def is_configured(self) -> bool:
        return bool(self._settings and self._settings.api_key)

    def generate(self, request: GenerationRequest) -> GenerationResponse:
        """
        Generate content for a prompt.

        Args:
            request: Prompt and sampling parameters

        Returns:
            GenerationResponse: success with content, or failure with a message
        """
        if not self.is_configured():
            return GenerationResponse.failure(NOT_CONFIGURED_MESSAGE)

        try:
            content = self._call_api(request)
        except GenerationServiceError as e:
            logger.error(f"Generation API call failed: {e.message}")
            return GenerationResponse.failure(e.message)
        except requests.RequestException as e:
            logger.error(f"Generation API unreachable: {str(e)}")
            return GenerationResponse.failure(f"API request failed: {str(e)}")

        return GenerationResponse(
            success=True,
            data=GeneratedContent(content=content),
            message="content generated"
        )

    def _call_api(self, request: GenerationRequest) -> str:
        settings = self._settings
        model = request.model or settings.model
        body: Dict[str, Any] = {
            "model": model,
            "messages": [{"role": "user", "content": request.prompt}],
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
        }

        response = self._http.post(
            f"{settings.base_url.rstrip('/')}/chat/completions",
            json=body,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {settings.api_key}",
            },
            timeout=settings.timeout,
        )

        if not response.ok:
            raise GenerationServiceError(
                f"API request failed: {response.status_code} {response.reason}",
                status_code=response.status_code,
                model=model,
            )

        try:
            payload = response.json()
            return payload["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise GenerationServiceError(f"Malformed response from generation API: {str(e)}", model=model)
