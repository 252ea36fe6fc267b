"""
LLM provider implementations for the TaleForge narrator
"""

from .base import BaseProvider, ProviderResponse
from .factory import create_provider
from .generic import GenericProvider
from .mock import MockProvider
from .openai import OpenAIProvider

__all__ = [
    "BaseProvider",
    "ProviderResponse",
    "OpenAIProvider",
    "GenericProvider",
    "MockProvider",
    "create_provider",
]
