"""
Voice provider clients and language configuration.
"""

from .base import CloneResult, ProviderHealth, VoiceInfo, VoiceProviderClient
from .elevenlabs import ElevenLabsClient
from .languages import (
    SUPPORTED_LANGUAGES,
    LanguageConfig,
    VoiceSettings,
    get_language_config,
    is_supported,
)

__all__ = [
    "VoiceProviderClient",
    "CloneResult",
    "VoiceInfo",
    "ProviderHealth",
    "ElevenLabsClient",
    "LanguageConfig",
    "VoiceSettings",
    "SUPPORTED_LANGUAGES",
    "get_language_config",
    "is_supported",
]
