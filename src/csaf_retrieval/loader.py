from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Optional, TypeVar

import requests
from requests.adapters import HTTPAdapter

from csaf_retrieval.context import DataSource, HttpResponse, RetrievalContext
from csaf_retrieval.errors import DeserializationError, FetchError
from csaf_retrieval.utils import http
from csaf_retrieval.utils.concurrency import DEFAULT_CHANNEL_CAPACITY
from csaf_retrieval.utils.csaf_types import Aggregator, Csaf, Provider, ROLIEFeed

if TYPE_CHECKING:
    from collections.abc import Callable

    from mashumaro.mixins.orjson import DataClassORJSONMixin

    ResponseCallback = Callable[[HttpResponse], None]

M = TypeVar("M", bound="DataClassORJSONMixin")

CSAF_ENTRY_PATTERN = re.compile(r"CSAF: (https://.*)")


class CsafLoader:
    """
    Fetches CSAF artifacts over HTTP and deserializes them.

    Typed fetches return a RetrievalContext built from the response and the parsed document, which
    is the evidence the requirement trees are evaluated against. Every call is independent, so a
    single loader is shared by all concurrent fetches of a pipeline.
    """

    def __init__(  # noqa: PLR0913
        self,
        session: Optional[requests.Session] = None,  # noqa: UP007
        retry_policy: Optional[http.RetryPolicy] = None,  # noqa: UP007
        timeout: int = http.DEFAULT_TIMEOUT,
        user_agent: str = http.DEFAULT_USER_AGENT,
        pool_size: int = DEFAULT_CHANNEL_CAPACITY,
        logger: Optional[logging.Logger] = None,  # noqa: UP007
    ):
        if session is None:
            session = requests.Session()
            adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size)
            session.mount("https://", adapter)
            session.mount("http://", adapter)
        self.session = session
        self.retry_policy = retry_policy or http.RetryPolicy()
        self.timeout = timeout
        self.user_agent = user_agent
        if not logger:
            logger = logging.getLogger(self.__class__.__name__)
        self.logger = logger

    def _get(self, url: str, response_callback: Optional[ResponseCallback] = None) -> requests.Response:  # noqa: UP007
        callback = None
        if response_callback:

            def callback(response: requests.Response) -> None:
                response_callback(HttpResponse.from_response(response))

        headers = {"User-Agent": self.user_agent} if self.user_agent else {}
        return http.get(
            url,
            self.logger,
            session=self.session,
            retry_policy=self.retry_policy,
            timeout=self.timeout,
            response_callback=callback,
            headers=headers,
        )

    def _fetch_json(
        self,
        url: str,
        model: type[M],
        response_callback: Optional[ResponseCallback] = None,  # noqa: UP007
    ) -> tuple[M, HttpResponse]:
        response = self._get(url, response_callback)
        try:
            document = model.from_json(response.content)
        except Exception as e:
            raise DeserializationError(url, e) from e
        self.logger.trace(f"fetched {model.__name__} from {url}")  # type: ignore[attr-defined]
        return document, HttpResponse.from_response(response)

    def _fetch_context(
        self,
        url: str,
        model: type[Provider | Aggregator | Csaf],
        data_source: DataSource,
        response_callback: Optional[ResponseCallback] = None,  # noqa: UP007
    ) -> RetrievalContext:
        document, response = self._fetch_json(url, model, response_callback)
        return RetrievalContext(document=document, http_response=response, data_source=data_source)

    def fetch_provider(
        self,
        url: str,
        data_source: DataSource = DataSource.UNSET,
        response_callback: Optional[ResponseCallback] = None,  # noqa: UP007
    ) -> RetrievalContext:
        return self._fetch_context(url, Provider, data_source, response_callback)

    def fetch_aggregator(
        self,
        url: str,
        response_callback: Optional[ResponseCallback] = None,  # noqa: UP007
    ) -> RetrievalContext:
        return self._fetch_context(url, Aggregator, DataSource.UNSET, response_callback)

    def fetch_document(
        self,
        url: str,
        response_callback: Optional[ResponseCallback] = None,  # noqa: UP007
    ) -> RetrievalContext:
        return self._fetch_context(url, Csaf, DataSource.UNSET, response_callback)

    def fetch_rolie_feed(self, url: str, response_callback: Optional[ResponseCallback] = None) -> ROLIEFeed:  # noqa: UP007
        feed, _ = self._fetch_json(url, ROLIEFeed, response_callback)
        return feed

    def fetch_text(self, url: str, response_callback: Optional[ResponseCallback] = None) -> str:  # noqa: UP007
        return self._get(url, response_callback).text

    def fetch_security_txt_csaf_urls(
        self,
        domain: str,
        response_callback: Optional[ResponseCallback] = None,  # noqa: UP007
    ) -> list[str]:
        """
        Return the `CSAF:` entries of the domain's security.txt in file order.

        The .well-known location is tried first, the legacy location at the root of the domain
        only if that fetch fails.
        """
        well_known = f"https://{domain}/.well-known/security.txt"
        try:
            text = self.fetch_text(well_known, response_callback)
        except FetchError as e:
            legacy = f"https://{domain}/security.txt"
            self.logger.debug(f"no security.txt at {well_known} ({e}), trying {legacy}")
            text = self.fetch_text(legacy, response_callback)

        urls = []
        for line in text.splitlines():
            match = CSAF_ENTRY_PATTERN.fullmatch(line.strip())
            if match:
                urls.append(match.group(1))
        return urls
