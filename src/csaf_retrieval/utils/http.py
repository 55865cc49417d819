from __future__ import annotations

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

import requests

from csaf_retrieval.errors import HTTPStatusError, NetworkError

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable

DEFAULT_TIMEOUT = 30
DEFAULT_USER_AGENT = "csaf-retrieval"


@dataclass
class RetryPolicy:
    """
    Exponential backoff applied to 429 and 5xx responses.

    The delay before retry number `n` (counting from 1) is `min(base**n * base_delay_ms, max_delay_ms)`.
    """

    max_retries: int = 3
    base: float = 2.0
    base_delay_ms: int = 1000
    max_delay_ms: int = 60000

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must not be negative")
        if self.base_delay_ms < 0 or self.max_delay_ms < 0:
            raise ValueError("retry delays must not be negative")

    def delay_seconds(self, retry: int) -> float:
        return min(self.base**retry * self.base_delay_ms, self.max_delay_ms) / 1000


def is_retryable(status_code: int) -> bool:
    return status_code == 429 or 500 <= status_code < 600


def get(  # noqa: PLR0913
    url: str,
    logger: logging.Logger,
    session: Optional[requests.Session] = None,  # noqa: UP007
    retry_policy: Optional[RetryPolicy] = None,  # noqa: UP007
    timeout: int = DEFAULT_TIMEOUT,
    response_callback: Optional[Callable[[requests.Response], None]] = None,  # noqa: UP007
    **kwargs: Any,
) -> requests.Response:
    """
    Perform a GET on the url, retrying 429 and 5xx responses. Retried failures are logged as warnings.

    Args:
        url (string): the url to get
        logger: a logging.Logger that info about the request should be logged to
        session: the requests.Session to issue the request with (a module level `requests.get` is used if absent)
        retry_policy: how often and how long to back off on 429/5xx. A maximum of max_retries+1 calls are made.
        timeout: passed to the GET call. defaults to 30 seconds.
        response_callback: called with every response received, including the ones that are retried or rejected.
        **kwargs: additional args are passed to the GET call unchanged.
    Raises:
        NetworkError if no response could be obtained (not retried).
        HTTPStatusError for any other non-2xx status, or the last 429/5xx status once retries are exhausted.

    Example:
        http.get("https://example.com/index.txt", self.logger, session=session, retry_policy=RetryPolicy(max_retries=1))

    """
    if retry_policy is None:
        retry_policy = RetryPolicy()
    do_get = session.get if session is not None else requests.get

    last_exception: HTTPStatusError | None = None
    for attempt in range(retry_policy.max_retries + 1):
        if last_exception:
            sleep_interval = retry_policy.delay_seconds(attempt)
            logger.warning(f"will retry in {sleep_interval:g} seconds...")
            time.sleep(sleep_interval)

        logger.trace(f"http GET {url} timeout={timeout} attempt={attempt + 1}")  # type: ignore[attr-defined]
        try:
            response = do_get(url, timeout=timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            raise NetworkError(url, str(e)) from e

        if response_callback:
            response_callback(response)

        if 200 <= response.status_code < 300:
            return response

        last_exception = HTTPStatusError(response.status_code, url)
        if not is_retryable(response.status_code):
            raise last_exception
        logger.warning(f"attempt {attempt + 1} of {retry_policy.max_retries + 1} failed: {last_exception}")

    if last_exception:
        logger.error(f"last retry of GET {url} failed with {last_exception}")
        raise last_exception
    raise Exception("unreachable")
