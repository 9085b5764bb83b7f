# maxwatch/maxtools/errors.py
"""Exceptions raised by the MaxScale admin client and maxinfo monitor."""


class MaxScaleError(Exception):
    """Base exception for MaxScale client errors."""

    pass


class ConnectionFailedError(MaxScaleError):
    """TCP dial failed, or the client is not connected."""

    pass


class ReadError(MaxScaleError):
    """Error reading from the admin socket."""

    pass


class NegotiationError(MaxScaleError):
    """Incorrect maxscale protocol negotiation."""

    pass


class AuthenticationError(MaxScaleError):
    """Credentials rejected by the admin channel."""

    pass


class RequestError(MaxScaleError):
    """HTTP request to the maxinfo endpoint failed."""

    pass


class DecodeError(MaxScaleError):
    """Maxinfo response body is not a valid server array."""

    pass


class WriteError(MaxScaleError):
    """Error writing to the admin socket."""

    pass
