"""
Supported languages and their provider model mappings.

Speech-to-speech and text-to-speech use different model families on the
provider; sending a TTS model id to the speech-to-speech endpoint is
rejected outright, so each language carries both.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


DEFAULT_LANGUAGE = "en"

TTS_MODEL = "eleven_multilingual_v2"
STS_MODEL = "eleven_multilingual_sts_v2"


@dataclass(frozen=True)
class VoiceSettings:
    """Voice synthesis parameters sent with every conversion."""

    stability: float = 0.5
    similarity_boost: float = 0.75
    style: float = 0.5
    use_speaker_boost: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stability": self.stability,
            "similarity_boost": self.similarity_boost,
            "style": self.style,
            "use_speaker_boost": self.use_speaker_boost,
        }

    def merged(self, overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        settings = self.to_dict()
        if overrides:
            settings.update(overrides)
        return settings


@dataclass(frozen=True)
class LanguageConfig:
    """Per-language provider configuration."""

    code: str
    name: str
    native_name: str
    tts_model: str = TTS_MODEL
    sts_model: str = STS_MODEL
    voice_settings: VoiceSettings = field(default_factory=VoiceSettings)


SUPPORTED_LANGUAGES: Dict[str, LanguageConfig] = {
    config.code: config
    for config in (
        LanguageConfig("hi", "Hindi", "हिन्दी"),
        LanguageConfig("en", "English", "English"),
        LanguageConfig("mr", "Marathi", "मराठी"),
        LanguageConfig("gu", "Gujarati", "ગુજરાતી"),
        LanguageConfig("ta", "Tamil", "தமிழ்"),
        LanguageConfig("te", "Telugu", "తెలుగు"),
        LanguageConfig("kn", "Kannada", "ಕನ್ನಡ"),
        LanguageConfig("bn", "Bengali", "বাংলা"),
        LanguageConfig("ml", "Malayalam", "മലയാളം"),
        LanguageConfig("pa", "Punjabi", "ਪੰਜਾਬੀ"),
    )
}


def is_supported(code: str) -> bool:
    return code in SUPPORTED_LANGUAGES


def get_language_config(code: Optional[str]) -> LanguageConfig:
    """Get the configuration for a language, falling back to English."""
    return SUPPORTED_LANGUAGES.get(code or DEFAULT_LANGUAGE, SUPPORTED_LANGUAGES[DEFAULT_LANGUAGE])


__all__ = [
    "DEFAULT_LANGUAGE",
    "TTS_MODEL",
    "STS_MODEL",
    "VoiceSettings",
    "LanguageConfig",
    "SUPPORTED_LANGUAGES",
    "is_supported",
    "get_language_config",
]
