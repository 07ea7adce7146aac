"""
Doctor Voice Pipeline
=====================

Core modules for the doctor voice campaign platform.

This package provides the voice generation backend:
- Source resolution for local, object-store and HTTP media references
- ElevenLabs voice cloning and speech-to-speech client
- Per-submission clone orchestration
- Per-language generation fan-out
- Provider voice slot lifecycle management
"""

__version__ = "1.0.0"
