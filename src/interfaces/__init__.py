"""Public interface definitions for all external service providers.

Every external API or store is reached exclusively through the abstract
base classes defined in this package.  Concrete adapters implement these
interfaces and are injected at startup by ``src/main.py``.

CONCRETE PROVIDER MAP:
    Interface              →  Concrete implementations (in src/providers/)
    ─────────────────────────────────────────────────────────────────
    ILLMProvider           →  OpenAILLMProvider, AnthropicLLMProvider,
                              GeminiLLMProvider, GrokLLMProvider
    IAttachmentStore       →  MemoryAttachmentStore
    IStatisticsProvider    →  SQLiteStatisticsProvider
"""

from src.interfaces.attachment_store import IAttachmentStore
from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.statistics_provider import IStatisticsProvider

__all__ = [
    "IAttachmentStore",
    "ILLMProvider",
    "IStatisticsProvider",
]
