from __future__ import annotations

import dataclasses
import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from urllib.parse import unquote, urlparse

if TYPE_CHECKING:
    import requests

    from csaf_retrieval.utils.csaf_types import CsafDocumentType


class DataSource(str, enum.Enum):
    """How a metadata document was discovered."""

    WELL_KNOWN = "well-known"
    SECURITY_TXT = "security.txt"
    DNS = "dns"
    UNSET = "unset"


@dataclass(frozen=True)
class HttpResponse:
    """The parts of an HTTP exchange that requirements look at."""

    url: str
    status_code: int
    request_headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_response(cls, response: requests.Response) -> HttpResponse:
        request_headers: dict[str, str] = {}
        if response.request is not None and response.request.headers:
            request_headers = dict(response.request.headers)
        return cls(url=response.url, status_code=response.status_code, request_headers=request_headers)

    @property
    def scheme(self) -> str:
        return urlparse(self.url).scheme.lower()

    @property
    def filename(self) -> str:
        return unquote(urlparse(self.url).path.rsplit("/", 1)[-1])

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    def has_request_header(self, name: str) -> bool:
        return any(k.lower() == name.lower() for k in self.request_headers)


@dataclass(frozen=True)
class RetrievalContext:
    """
    Evidence gathered during one fetch attempt: the parsed document (if any), the HTTP response
    (if any) and how the URL was discovered. A new context is built for every attempt and never
    shared between concurrent fetches.
    """

    document: CsafDocumentType | None = None
    http_response: HttpResponse | None = None
    data_source: DataSource = DataSource.UNSET

    def with_data_source(self, data_source: DataSource) -> RetrievalContext:
        return dataclasses.replace(self, data_source=data_source)
