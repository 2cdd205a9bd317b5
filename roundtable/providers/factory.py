"""Build the three generation backends from credentials and config."""

import logging
import os
from dataclasses import dataclass

from config.config_loader import AppConfig
from roundtable.models import BackendId
from roundtable.providers.anthropic import AnthropicProvider
from roundtable.providers.base import GenerationBackend
from roundtable.providers.gemini import GeminiProvider
from roundtable.providers.openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)

PROVIDER_CLASSES: dict[BackendId, type[GenerationBackend]] = {
    BackendId.CHATGPT: OpenAIProvider,
    BackendId.CLAUDE: AnthropicProvider,
    BackendId.GEMINI: GeminiProvider,
}


@dataclass
class Credentials:
    openai: str = ""
    anthropic: str = ""
    google: str = ""

    def for_backend(self, backend_id: BackendId) -> str:
        return {
            BackendId.CHATGPT: self.openai,
            BackendId.CLAUDE: self.anthropic,
            BackendId.GEMINI: self.google,
        }[backend_id]

    def with_env_fallback(self, config: AppConfig) -> "Credentials":
        """Fill blank keys from the environment variables named in config."""
        def pick(backend_id: BackendId, explicit: str) -> str:
            if explicit.strip():
                return explicit.strip()
            return os.environ.get(config.models[backend_id].api_key_env, "").strip()

        return Credentials(
            openai=pick(BackendId.CHATGPT, self.openai),
            anthropic=pick(BackendId.CLAUDE, self.anthropic),
            google=pick(BackendId.GEMINI, self.google),
        )

    def missing(self) -> list[BackendId]:
        return [b for b in BackendId if not self.for_backend(b).strip()]


def build_backends(credentials: Credentials, config: AppConfig) -> dict[BackendId, GenerationBackend]:
    """Instantiate one backend per BackendId.

    Raises:
        ProviderError: If a key is missing for any backend.
    """
    backends: dict[BackendId, GenerationBackend] = {}
    for backend_id, cls in PROVIDER_CLASSES.items():
        backends[backend_id] = cls(config.models[backend_id], credentials.for_backend(backend_id))
        logger.debug("Built %s backend (%s)", backend_id.value, config.models[backend_id].model)
    return backends
