"""
Callsheet Custom Exceptions

Custom exception classes for error handling throughout the breakdown pipeline.

Only two conditions are fatal to a breakdown run: every generation provider
failing (ProviderUnavailableError) and the primary provider response holding
no recoverable structure (UnrecoverableOutputError). Everything else degrades
to a warning on the returned collection.
"""


class CallsheetError(Exception):
    """Base exception for all Callsheet errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================

class ConfigurationError(CallsheetError):
    """Raised when there's an issue with configuration."""
    pass


class MissingConfigError(ConfigurationError):
    """Raised when a required configuration is missing."""
    pass


class InvalidConfigError(ConfigurationError):
    """Raised when a configuration value is invalid."""
    pass


# =============================================================================
# SCRIPT ERRORS
# =============================================================================

class ScriptFormatError(CallsheetError):
    """Raised when a script document cannot be read from its wire shape."""
    pass


# =============================================================================
# PIPELINE ERRORS
# =============================================================================

class PipelineError(CallsheetError):
    """Base exception for pipeline errors."""
    pass


class PipelineStageError(PipelineError):
    """Raised when a specific pipeline stage fails."""

    def __init__(self, stage_name: str, reason: str):
        message = f"Pipeline stage '{stage_name}' failed: {reason}"
        super().__init__(message, {"stage": stage_name, "reason": reason})


class ExtractionError(PipelineError):
    """Base exception for provider output extraction errors."""
    pass


class UnrecoverableOutputError(ExtractionError):
    """Raised when no record structure can be recovered from provider output."""

    def __init__(self, reason: str, preview: str = ""):
        message = f"Provider output is unrecoverable: {reason}"
        details = {"reason": reason}
        if preview:
            details["preview"] = preview
        super().__init__(message, details)


# =============================================================================
# LLM ERRORS
# =============================================================================

class LLMError(CallsheetError):
    """Base exception for LLM-related errors."""
    pass


class LLMProviderError(LLMError):
    """Raised when there's an issue with an LLM provider."""

    def __init__(self, provider: str, reason: str):
        message = f"LLM provider '{provider}' error: {reason}"
        super().__init__(message, {"provider": provider, "reason": reason})


class ContentBlockedError(LLMProviderError):
    """Raised when content is blocked by provider's safety filters."""

    def __init__(self, provider: str, reason: str):
        super().__init__(provider, reason)
        self.message = f"Content blocked by {provider}: {reason}"
        self.is_content_block = True


class ProviderUnavailableError(LLMError):
    """Raised when every configured generation provider failed."""

    def __init__(self, failures: list):
        reasons = "; ".join(f"{f.provider}: {f.reason}" for f in failures)
        message = f"All {len(failures)} generation provider(s) failed"
        if reasons:
            message = f"{message} ({reasons})"
        super().__init__(
            message,
            {"failures": [{"provider": f.provider, "reason": f.reason} for f in failures]}
        )
        self.failures = list(failures)
