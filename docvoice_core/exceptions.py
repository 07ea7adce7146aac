"""Exceptions for the voice generation pipeline."""

from typing import Any, Dict, Optional


class PipelineError(Exception):
    """Base exception for pipeline operations."""

    http_status: int = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "PIPELINE_ERROR"
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "details": self.details,
        }


# =============================================================================
# Source resolution
# =============================================================================


class SourceNotFoundError(PipelineError):
    """A media reference could not be resolved to an existing file."""

    http_status = 404

    def __init__(self, reference: str):
        super().__init__(
            f"Audio file not found or inaccessible: {reference}",
            code="SOURCE_NOT_FOUND",
            details={"reference": reference},
        )
        self.reference = reference


class DownloadError(PipelineError):
    """A remote media reference could not be downloaded."""

    http_status = 502

    def __init__(self, reference: str, status_code: Optional[int] = None, reason: str = ""):
        message = f"Failed to download file: {status_code}" if status_code else f"Failed to download file: {reason}"
        super().__init__(
            message,
            code="DOWNLOAD_ERROR",
            details={"reference": reference, "status_code": status_code},
        )
        self.reference = reference
        self.status_code = status_code


class StorageError(PipelineError):
    """Object store operation failed."""

    http_status = 502

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code="STORAGE_ERROR", **kwargs)


# =============================================================================
# Provider
# =============================================================================


class ProviderError(PipelineError):
    """Non-2xx response (or transport failure) from the voice provider."""

    http_status = 502

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        super().__init__(
            message,
            code="PROVIDER_ERROR",
            details={"status_code": status_code, "body": body},
        )
        self.status_code = status_code
        self.body = body

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class NoValidSamplesError(PipelineError):
    """None of the sample paths handed to the provider exist."""

    http_status = 400

    def __init__(self, message: str = "No valid audio sample files provided for cloning"):
        super().__init__(message, code="NO_VALID_SAMPLES")


# =============================================================================
# Orchestration
# =============================================================================


class SubmissionNotFoundError(PipelineError):
    """Submission does not exist."""

    http_status = 404

    def __init__(self, submission_id: int):
        super().__init__(
            "Submission not found",
            code="SUBMISSION_NOT_FOUND",
            details={"submission_id": submission_id},
        )
        self.submission_id = submission_id


class NoAudioSamplesError(PipelineError):
    """Submission has no audio sample references."""

    http_status = 400

    def __init__(self, submission_id: int):
        super().__init__(
            "No audio samples available",
            code="NO_AUDIO_SAMPLES",
            details={"submission_id": submission_id},
        )
        self.submission_id = submission_id


class AlreadyClonedError(PipelineError):
    """Voice already cloned for the submission; callers treat this as a no-op."""

    http_status = 400

    def __init__(self, submission_id: int, voice_id: str):
        super().__init__(
            "Voice already cloned",
            code="ALREADY_CLONED",
            details={"submission_id": submission_id, "voice_id": voice_id},
        )
        self.submission_id = submission_id
        self.voice_id = voice_id


class VoiceNotClonedError(PipelineError):
    """Operation needs a cloned voice but the submission has none."""

    http_status = 400

    def __init__(self, submission_id: int):
        super().__init__(
            "Voice not cloned yet",
            code="VOICE_NOT_CLONED",
            details={"submission_id": submission_id},
        )
        self.submission_id = submission_id


class NoLanguagesSelectedError(PipelineError):
    """Submission has no selected languages."""

    http_status = 400

    def __init__(self, submission_id: int):
        super().__init__(
            "No languages selected",
            code="NO_LANGUAGES_SELECTED",
            details={"submission_id": submission_id},
        )
        self.submission_id = submission_id


class NoMasterFoundError(PipelineError):
    """No active audio master exists for a language."""

    http_status = 404

    def __init__(self, language: str):
        super().__init__(
            "no audio master found",
            code="NO_MASTER_FOUND",
            details={"language": language},
        )
        self.language = language


class ConfirmationRequiredError(PipelineError):
    """Destructive bulk operation invoked without explicit confirmation."""

    http_status = 400

    def __init__(self):
        super().__init__(
            "Confirmation required: pass confirm=true to delete ALL active voices",
            code="CONFIRMATION_REQUIRED",
        )


__all__ = [
    "PipelineError",
    "SourceNotFoundError",
    "DownloadError",
    "StorageError",
    "ProviderError",
    "NoValidSamplesError",
    "SubmissionNotFoundError",
    "NoAudioSamplesError",
    "AlreadyClonedError",
    "VoiceNotClonedError",
    "NoLanguagesSelectedError",
    "NoMasterFoundError",
    "ConfirmationRequiredError",
]
