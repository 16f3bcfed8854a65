from __future__ import annotations

from http import HTTPStatus
from urllib.parse import urlparse

from requests import Response

from palace.ill.core.exceptions import IntegrationException


class RemoteIntegrationException(IntegrationException):
    """An exception that happens when we try and fail to communicate
    with a third-party service over HTTP.
    """

    title = "Failure contacting external service"
    internal_message = "Error accessing %s: %s"

    def __init__(
        self, url_or_service: str, message: str, debug_message: str | None = None
    ) -> None:
        """Indicate that a remote integration has failed.

        `param url_or_service` The name of the service that failed
           (e.g. "Libris"), or the specific URL that had the problem.
        """
        if url_or_service and any(
            url_or_service.startswith(x) for x in ("http:", "https:")
        ):
            self.url = url_or_service
            self.service = urlparse(url_or_service).netloc
        else:
            self.url = self.service = url_or_service

        super().__init__(message, debug_message)

    def __str__(self) -> str:
        message = super().__str__()
        if self.debug_message:
            message += "\n\n" + self.debug_message
        return self.internal_message % (self.url, message)

    @property
    def status_line(self) -> str:
        """A short, single line description of the failure.

        This is what we show to library staff when an action fails.
        """
        return self.message or self.title


class BadResponseException(RemoteIntegrationException):
    """The request seemingly went okay, but we got a bad response."""

    title = "Bad response"
    internal_message = "Bad response from %s: %s"

    BAD_STATUS_CODE_MESSAGE = (
        "Got status code %s from external server, cannot continue."
    )

    def __init__(
        self,
        url_or_service: str,
        message: str,
        response: Response,
        debug_message: str | None = None,
    ):
        """Indicate that a remote integration has failed.

        :param url_or_service: The name of the service that failed
           (e.g. "Libris"), or the specific URL that had the problem.
        :param message: The error message
        :param response: The HTTP response object
        :param debug_message: Optional debug message
        """
        if debug_message is None:
            debug_message = (
                f"Status code: {response.status_code}\nContent: {response.text}"
            )

        super().__init__(url_or_service, message, debug_message)
        self.response = response

    @property
    def status_line(self) -> str:
        """The HTTP status line of the bad response, e.g. '404 Not Found'."""
        code = self.response.status_code
        reason = self.response.reason
        if not reason:
            try:
                reason = HTTPStatus(code).phrase
            except ValueError:
                reason = ""
        return f"{code} {reason}".strip()

    @classmethod
    def bad_status_code(cls, url: str, response: Response) -> BadResponseException:
        """The response is bad because the status code is wrong."""
        message = cls.BAD_STATUS_CODE_MESSAGE % response.status_code
        return cls(
            url,
            message,
            response,
        )


class RequestNetworkException(RemoteIntegrationException):
    """An exception from the requests module that we could not recover from."""

    title = "Network failure contacting third-party service"
    internal_message = "Network error contacting %s: %s"


class RequestTimedOut(RequestNetworkException):
    """The request timed out.

    The broker may or may not have applied the request, so this must not
    be retried blindly for POST requests.
    """

    title = "Timeout"
    internal_message = "Timeout accessing %s: %s"
