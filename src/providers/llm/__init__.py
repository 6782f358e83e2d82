"""LLM provider adapters.

Four concrete implementations of ILLMProvider (src/interfaces/llm_provider.py),
all built on BaseLLMProvider (src/providers/llm/base.py):
    - OpenAILLMProvider    — gpt-4o-mini / gpt-3.5-turbo (chat completions)
    - AnthropicLLMProvider — Claude 3.5 Haiku / Sonnet (Messages API)
    - GeminiLLMProvider    — Gemini 2.0 Flash / Flash-Lite (google-genai)
    - GrokLLMProvider      — Grok via xAI's REST API (httpx)

main.py registers every adapter in a ProviderRegistry at startup, whether
or not its key is configured; unconfigured adapters answer with a
"no configurada" message instead of calling the vendor.
"""

from src.providers.llm.anthropic_provider import AnthropicLLMProvider
from src.providers.llm.base import BaseLLMProvider
from src.providers.llm.gemini_provider import GeminiLLMProvider
from src.providers.llm.grok_provider import GrokLLMProvider
from src.providers.llm.openai_provider import OpenAILLMProvider

__all__ = [
    "AnthropicLLMProvider",
    "BaseLLMProvider",
    "GeminiLLMProvider",
    "GrokLLMProvider",
    "OpenAILLMProvider",
]
