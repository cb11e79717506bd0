"""Error taxonomy for recipe generation.

Server-side failures are turned into ``error`` stream events by the relay.
Client-side failures are raised once from the stream client. Each error
carries a stable ``error_code`` which is also what goes on the wire.
"""

from dataclasses import dataclass


@dataclass(slots=True)
class CookSmartError(Exception):
    message: str
    error_code: str

    def __str__(self) -> str:
        return f"{self.error_code}: {self.message}"


class UpstreamError(CookSmartError):
    def __init__(self, message: str = "Completion provider request failed") -> None:
        super().__init__(message=message, error_code="upstream_failed")


class UpstreamTimeout(CookSmartError):
    def __init__(self, message: str = "Completion provider stopped responding") -> None:
        super().__init__(message=message, error_code="upstream_timeout")


class GenerationFailed(CookSmartError):
    def __init__(self, message: str = "Recipe generation failed") -> None:
        super().__init__(message=message, error_code="generation_failed")


class StreamInterrupted(CookSmartError):
    def __init__(self, message: str = "Recipe stream ended before close") -> None:
        super().__init__(message=message, error_code="stream_interrupted")
