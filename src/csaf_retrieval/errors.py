"""
Error taxonomy shared by the loader, the resolver and the document pipeline.

Fetch-level errors (`NetworkError`, `HTTPStatusError`, `DeserializationError`) are raised by the
loader. `ValidationError` is raised when a requirement tree evaluates to a failure. `RetrievalError`
names the stage and URL that failed and always chains the underlying error as its cause.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence


class CsafRetrievalError(Exception):
    pass


class FetchError(CsafRetrievalError):
    def __init__(self, message: str, url: str):
        super().__init__(message)
        self.url = url


class NetworkError(FetchError):
    """The request never produced an HTTP response (connection refused, DNS failure, timeout...)."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"network error during GET {url}: {reason}", url)
        self.reason = reason


class HTTPStatusError(FetchError):
    def __init__(self, status_code: int, url: str):
        super().__init__(f"unexpected HTTP status {status_code} for GET {url}", url)
        self.status_code = status_code


class DeserializationError(FetchError):
    def __init__(self, url: str, cause: Exception):
        super().__init__(f"could not deserialize response from {url}: {cause}", url)
        self.__cause__ = cause


class ValidationError(CsafRetrievalError):
    """A requirement tree evaluated to a failure; `errors` holds the rule violations in order."""

    def __init__(self, errors: Sequence[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) if self.errors else "validation failed")


class RetrievalError(CsafRetrievalError):
    def __init__(self, message: str, cause: BaseException | None = None, url: str | None = None):
        super().__init__(message)
        self.message = message
        self.url = url
        if cause is not None:
            self.__cause__ = cause


class ResolutionExhausted(RetrievalError):
    """
    Every discovery strategy for a domain failed.

    `attempts` holds one (description, error) pair per strategy in the order they were tried,
    the last of which is also chained as the cause.
    """

    def __init__(self, domain: str, attempts: Sequence[tuple[str, BaseException]]):
        self.domain = domain
        self.attempts = list(attempts)
        lines = [f"Failed to resolve provider for {domain} via .well-known, security.txt or DNS."]
        lines.extend(f"- {description}: {error}" for description, error in self.attempts)
        super().__init__("\n".join(lines), cause=self.attempts[-1][1] if self.attempts else None)


def cause_chain(error: BaseException) -> list[BaseException]:
    """Return `error` followed by each of its chained causes."""
    chain = []
    current: BaseException | None = error
    while current is not None and current not in chain:
        chain.append(current)
        current = current.__cause__
    return chain
