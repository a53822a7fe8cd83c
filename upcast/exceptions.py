"""Exceptions that are used by upcast."""


class CastException(Exception):

    """Base class for all upcast exceptions."""


class UnsupportedDevice(CastException):

    """Raised when a device cannot be controlled, eg because its description
    does not expose an AVTransport control URL."""

    def __init__(self, message="Device type not supported"):
        super().__init__(message)


class ConnectionFailed(CastException):

    """Raised when a cast session cannot be established."""

    def __init__(self, reason):
        """
        Args:
            reason (str): Why the connection failed.
        """
        super().__init__("Failed to connect: {}".format(reason))
        self.reason = reason


class SessionNotActive(CastException):

    """Raised when a playback or volume command is sent without an active
    cast session."""

    def __init__(self, message="No active cast session"):
        super().__init__(message)


class PlaybackFailed(CastException):

    """A control command failed.

    Raised for non-transient HTTP errors returned by a renderer, and when a
    transient HTTP error persists after all retries.
    """

    def __init__(self, reason, status_code=None, error_code=None, error_description=""):
        """
        Args:
            reason (str): A short description of the failure.
            status_code (int): The HTTP status code, if any.
            error_code (str): The UPnP error code from the SOAP fault, as a
                string, if the renderer sent one.
            error_description (str): A description of the UPnP error code.
                Default is ""
        """
        super().__init__("Playback failed: {}".format(reason))
        self.reason = reason
        self.status_code = status_code
        self.error_code = error_code
        self.error_description = error_description


class NetworkError(CastException):

    """A transport level failure below SOAP, eg a refused connection or a
    timeout.

    Attributes:
        cause (Exception): The original exception
    """

    def __init__(self, cause):
        """
        Args:
            cause (Exception): The original exception
        """
        super().__init__("Network error: {}".format(cause))
        self.cause = cause
        self.__cause__ = cause


class UnknownXMLStructure(CastException):

    """Raised if XML with an unknown or unexpected structure is returned."""
