"""Provider implementations."""

from .base import ModelProvider
from .cloudflare import CloudflareProvider, cloudflare_model
from .factory import ProviderFactory
from .groq import GroqProvider, groq_model
from .models import (
    FunctionCall,
    Message,
    ModelSelector,
    ProviderRequest,
    ProviderResponse,
    ToolCall,
    Usage,
)

__all__ = [
    "CloudflareProvider",
    "FunctionCall",
    "GroqProvider",
    "Message",
    "ModelProvider",
    "ModelSelector",
    "ProviderFactory",
    "ProviderRequest",
    "ProviderResponse",
    "ToolCall",
    "Usage",
    "cloudflare_model",
    "groq_model",
]
