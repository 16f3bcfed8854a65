from typing import Any


class BaseIllException(Exception):
    """Base class for all Exceptions raised by the ILL backend."""

    def __init__(self, message: str | None = None):
        """Initializes a new instance of BaseIllException class

        :param message: String containing description of the exception that occurred
        """
        super().__init__(message)
        self.message = message

    def __getstate__(self) -> dict[str, Any]:
        return {"dict": self.__dict__, "args": self.args}

    def __setstate__(self, state: dict[str, Any] | None) -> None:
        assert state is not None
        self.__dict__.update(state["dict"])
        self.args = state["args"]

    def __reduce__(self) -> tuple[Any, ...]:
        state = self.__getstate__()
        return self.__class__.__new__, (self.__class__,), state


class IllValueError(BaseIllException, ValueError): ...


class IllLookupError(BaseIllException, LookupError): ...


class IntegrationException(BaseIllException):
    """An exception that happens when our connection to the loan broker
    is broken.

    This may be because communication failed
    (RemoteIntegrationException), or because local configuration is
    missing or obviously wrong (CannotLoadConfiguration).
    """

    def __init__(self, message: str | None, debug_message: str | None = None) -> None:
        """Constructor.

        :param message: The normal message passed to any Exception
        constructor. This is what ends up in front of library staff.

        :param debug_message: An extra explanation of the problem, for the
        logs. This may include the response body we got from the broker.
        """
        super().__init__(message)
        self.debug_message = debug_message


class CannotLoadConfiguration(IntegrationException):
    """The configuration could not be loaded, or it is obviously wrong."""
