"""Failure kinds raised by remote endpoints and the request queue.

None of these escape ``CaptionGenerator.generate_caption``; the orchestrator
turns each one into a fallback caption and records ``kind`` on the result.
"""


class CaptionServiceError(Exception):
    kind = "error"


class NetworkFailure(CaptionServiceError):
    """Endpoint unreachable, timed out, or answered with a non-2xx status."""
    kind = "network_failure"


class MalformedResponse(CaptionServiceError):
    """Endpoint answered but the body is missing the expected fields."""
    kind = "malformed_response"


class QuotaExceeded(CaptionServiceError):
    """Session ceiling on remote calls has been reached."""
    kind = "quota_exceeded"


__all__ = ["CaptionServiceError", "NetworkFailure", "MalformedResponse", "QuotaExceeded"]
