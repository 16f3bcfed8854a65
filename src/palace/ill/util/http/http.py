from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Mapping
from typing import Any, Literal, TypedDict, Unpack

import requests
from requests import Session as RequestsSession
from requests.adapters import HTTPAdapter, Response
from urllib3 import Retry

from palace.ill.util.http.base import (
    ResponseCodesTypes,
    get_default_headers,
    raise_for_bad_response,
)
from palace.ill.util.http.exception import (
    RequestNetworkException,
    RequestTimedOut,
)
from palace.ill.util.log import LoggerMixin

MakeRequestT = RequestsSession | Callable[..., Response] | Literal["not-given"]
NOT_GIVEN: Literal["not-given"] = "not-given"


class GetRequestKwargs(TypedDict, total=False):
    params: Mapping[str, str | int | float | None] | None
    headers: Mapping[str, str] | None
    timeout: float | int | None
    allow_redirects: bool

    allowed_response_codes: ResponseCodesTypes
    disallowed_response_codes: ResponseCodesTypes
    max_retry_count: int

    make_request_with: MakeRequestT


class RequestKwargs(GetRequestKwargs, total=False):
    data: Iterable[bytes] | str | bytes | Mapping[str, Any] | None
    json: Mapping[str, Any] | None


class HTTP(LoggerMixin):
    """A helper for the `requests` module."""

    # Broker actions are not idempotent, a retried POST could apply an
    # action twice. So unlike most integrations we default to no retries.
    DEFAULT_REQUEST_RETRIES = 0
    DEFAULT_REQUEST_TIMEOUT = 20
    DEFAULT_BACKOFF_FACTOR = 1.0

    # The set of status codes on which a retry will be attempted (if the number of retries requested is non-zero).
    RETRY_STATUS_CODES = [429, 500, 502, 503, 504]

    @classmethod
    def session(cls, max_retry_count: int | None = None) -> RequestsSession:
        """
        Create a requests session with the given retry settings.

        Note: RequestsSession is not thread-safe, so this should be used
        in a context where the session is not shared across threads.
        """
        max_retry_count = (
            max_retry_count
            if max_retry_count is not None
            else cls.DEFAULT_REQUEST_RETRIES
        )

        session = RequestsSession()
        retry_strategy = Retry(
            total=max_retry_count,
            status_forcelist=cls.RETRY_STATUS_CODES,
            backoff_factor=cls.DEFAULT_BACKOFF_FACTOR,
            # Never retry POSTs, even when retries are requested.
            allowed_methods=Retry.DEFAULT_ALLOWED_METHODS,
            # We set raise_on_status to False, so if our automatic retries are exhausted,
            # we can handle the final response ourselves in raise_for_bad_response.
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)

        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    @classmethod
    def get_with_timeout(cls, url: str, **kwargs: Unpack[GetRequestKwargs]) -> Response:
        """Make a GET request with timeout handling."""
        return cls.request_with_timeout("GET", url, **kwargs)

    @classmethod
    def post_with_timeout(
        cls,
        url: str,
        **kwargs: Unpack[RequestKwargs],
    ) -> Response:
        """Make a POST request with timeout handling."""
        return cls.request_with_timeout("POST", url, **kwargs)

    @classmethod
    def request_with_timeout(
        cls, http_method: str, url: str, **kwargs: Unpack[RequestKwargs]
    ) -> Response:
        """Call requests.request and turn a timeout into a RequestTimedOut
        exception.
        """
        return cls._request_with_timeout(http_method, url, **kwargs)

    @classmethod
    def _request_with_timeout(
        cls,
        http_method: str,
        url: str,
        **kwargs: Unpack[RequestKwargs],
    ) -> Response:
        """Call some kind of method and turn a timeout into a RequestTimedOut
        exception.

        The core of `request_with_timeout` made easy to test.

        :param url: Make the request to this URL.
        :param kwargs: Keyword arguments for the request function.
        """
        make_request_with: MakeRequestT = kwargs.pop("make_request_with", NOT_GIVEN)

        allowed_response_codes = kwargs.pop("allowed_response_codes", [])
        disallowed_response_codes = kwargs.pop("disallowed_response_codes", [])

        if not "timeout" in kwargs:
            kwargs["timeout"] = cls.DEFAULT_REQUEST_TIMEOUT

        max_retry_count: int | None = kwargs.pop("max_retry_count", None)

        # Set a user-agent if not already present
        headers = get_default_headers()
        if (additional_headers := kwargs.get("headers")) is not None:
            headers.update(additional_headers)
        kwargs["headers"] = headers

        try:
            request_start_time = time.time()
            if make_request_with == NOT_GIVEN:
                with cls.session(max_retry_count=max_retry_count) as session:
                    response = session.request(http_method, url, **kwargs)  # type: ignore[misc]
            elif isinstance(make_request_with, RequestsSession):
                response = make_request_with.request(http_method, url, **kwargs)  # type: ignore[misc]
            else:
                response = make_request_with(http_method, url, **kwargs)  # type: ignore[operator]
            cls.logger().info(
                f"{http_method} request for {url} took {time.time() - request_start_time:.2f} seconds"
            )
        except requests.exceptions.Timeout as e:
            # Wrap the requests-specific Timeout exception
            # in a generic RequestTimedOut exception.
            raise RequestTimedOut(url, str(e)) from e
        except requests.exceptions.RequestException as e:
            # Wrap all other requests-specific exceptions in
            # a generic RequestNetworkException.
            raise RequestNetworkException(url, str(e)) from e

        return raise_for_bad_response(
            url,
            response,
            allowed_response_codes,
            disallowed_response_codes,
        )
