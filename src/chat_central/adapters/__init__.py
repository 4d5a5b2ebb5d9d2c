"""Platform adapters for captured chat API responses."""

from chat_central.adapters.base import (
    AdapterRegistry,
    PlatformAdapter,
    get_adapter_for_url,
    get_platform_from_host,
    is_supported_platform,
)
from chat_central.adapters.chatgpt import ChatGPTAdapter
from chat_central.adapters.claude import ClaudeAdapter
from chat_central.adapters.gemini import GeminiAdapter

# Register all adapters
AdapterRegistry.register(ClaudeAdapter())
AdapterRegistry.register(ChatGPTAdapter())
AdapterRegistry.register(GeminiAdapter())

__all__ = [
    "AdapterRegistry",
    "ChatGPTAdapter",
    "ClaudeAdapter",
    "GeminiAdapter",
    "PlatformAdapter",
    "get_adapter_for_url",
    "get_platform_from_host",
    "is_supported_platform",
]
