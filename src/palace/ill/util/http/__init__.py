from palace.ill.util.http.exception import (
    BadResponseException,
    RemoteIntegrationException,
    RequestNetworkException,
    RequestTimedOut,
)
from palace.ill.util.http.http import HTTP, GetRequestKwargs, RequestKwargs

__all__ = [
    "BadResponseException",
    "GetRequestKwargs",
    "HTTP",
    "RemoteIntegrationException",
    "RequestKwargs",
    "RequestNetworkException",
    "RequestTimedOut",
]
