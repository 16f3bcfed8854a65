from palace.ill.util.http import BadResponseException, RemoteIntegrationException


class LibrisValidationError(BadResponseException):
    """
    Raise when we are unable to validate a response from Libris.
    """

    @property
    def status_line(self) -> str:
        # The status code is usually 200 here, which tells staff nothing.
        return self.message or self.title


class NoBrokerData(RemoteIntegrationException):
    """Libris answered, but had nothing for us (a count of zero)."""

    title = "No data"
    internal_message = "No data from %s: %s"


class UpdateRejected(RemoteIntegrationException):
    """Libris answered an action, but did not carry it out.

    This happens when the timestamp we sent back is no longer current.
    """

    title = "Update rejected"
    internal_message = "Update rejected by %s: %s"
