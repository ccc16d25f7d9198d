"""Error taxonomy for the analysis pipeline."""

from __future__ import annotations


class AnalystError(Exception):
    def __init__(self, message: str, code: str = "INTERNAL_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class ExtractionFailed(AnalystError):
    """No JSON payload could be recovered from model output."""

    def __init__(self, reason: str, length: int = 0, preview: str = ""):
        self.reason = reason
        self.length = length
        self.preview = preview
        super().__init__(
            f"JSON extraction failed: {reason} (length={length})",
            code="EXTRACTION_FAILED",
        )


class AdapterUnavailable(AnalystError):
    def __init__(self, adapter: str, detail: str):
        self.adapter = adapter
        super().__init__(f"{adapter} unavailable: {detail}", code="ADAPTER_UNAVAILABLE")


class ReasoningServiceError(AnalystError):
    def __init__(self, message: str, body: str = ""):
        self.body = body
        super().__init__(message, code="REASONING_SERVICE_ERROR")


class PipelineCancelled(AnalystError):
    def __init__(self, reason: str = "canceled"):
        super().__init__(reason, code="CANCELED")


class ValidationRejected(AnalystError):
    def __init__(self, symbol: str, reason: str):
        self.symbol = symbol
        self.reason = reason
        super().__init__(f"{symbol}: {reason}", code="VALIDATION_REJECTED")
