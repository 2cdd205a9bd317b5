"""Abstract base for all generation backends."""

from abc import ABC, abstractmethod
from collections.abc import Callable

from roundtable.models import ChatMessage

ChunkCallback = Callable[[str], None]


class ProviderError(Exception):
    """Raised when a backend call fails.

    ``status_code`` carries the HTTP status reported by the SDK, when there
    was one, so failures can be classified without parsing text.
    """

    def __init__(self, provider_name: str, message: str, status_code: int | None = None) -> None:
        self.provider_name = provider_name
        self.status_code = status_code
        super().__init__(f"[{provider_name}] {message}")


def sdk_status_code(exc: BaseException) -> int | None:
    """Return the HTTP status an SDK exception reports, if any."""
    for attr in ("status_code", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    return None


class GenerationBackend(ABC):
    """Uniform streaming text-generation contract shared by every provider."""

    @abstractmethod
    def name(self) -> str:
        """Return the backend id (e.g. 'chatgpt', 'claude')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the configured model identifier string."""
        ...

    @abstractmethod
    async def generate(
        self,
        model: str,
        system_prompt: str,
        messages: list[ChatMessage],
        on_chunk: ChunkCallback | None = None,
    ) -> str:
        """Stream a completion for ``messages``.

        Args:
            model: Model identifier to call.
            system_prompt: Role instructions for this turn.
            messages: Ordered conversation; user messages may carry attachments.
            on_chunk: Called once per incremental text delta, in order.

        Returns:
            The full generated text.

        Raises:
            ProviderError: On API failure or empty output.
        """
        ...
