from __future__ import annotations


class InvalidRequestError(ValueError):
    """A resolver entrypoint received a missing or malformed parameter."""


class UpstreamError(RuntimeError):
    """An upstream API answered with an error status or an unreadable body."""


__all__ = ["InvalidRequestError", "UpstreamError"]
