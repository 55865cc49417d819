from __future__ import annotations

import csv
import datetime
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING
from urllib.parse import urlparse

from dateutil import parser as dateparser

from csaf_retrieval.context import DataSource
from csaf_retrieval.document import RetrievedDocument
from csaf_retrieval.errors import CsafRetrievalError, FetchError, ResolutionExhausted, RetrievalError
from csaf_retrieval.result import Result
from csaf_retrieval.utils.concurrency import DEFAULT_CHANNEL_CAPACITY, fan_out, merge
from csaf_retrieval.utils.csaf_types import Provider
from csaf_retrieval.validation import roles
from csaf_retrieval.validation.result import ValidationFailed

if TYPE_CHECKING:
    from collections.abc import Generator

    from csaf_retrieval.context import RetrievalContext
    from csaf_retrieval.loader import CsafLoader
    from csaf_retrieval.utils.csaf_types import Feed, ROLIEFeed
    from csaf_retrieval.validation.roles import Role

WELL_KNOWN_PATH = "/.well-known/csaf/provider-metadata.json"
DNS_HOST_PREFIX = "csaf.data.security."

logger = logging.getLogger("provider-resolver")


def well_known_url(domain: str) -> str:
    return f"https://{domain}{WELL_KNOWN_PATH}"


def dns_url(domain: str) -> str:
    return f"https://{DNS_HOST_PREFIX}{domain}"


def data_source_for(url: str) -> DataSource:
    """Guess how a provider-metadata.json URL would have been discovered from its shape alone."""
    parsed = urlparse(url)
    if parsed.path == WELL_KNOWN_PATH:
        return DataSource.WELL_KNOWN
    if (parsed.hostname or "").startswith(DNS_HOST_PREFIX):
        return DataSource.DNS
    return DataSource.UNSET


def _as_utc(value: datetime.datetime) -> datetime.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value


def _parse_timestamp(value: str) -> datetime.datetime:
    return _as_utc(dateparser.isoparse(value.strip()))


def parse_index(text: str) -> list[str]:
    return [line.strip() for line in text.splitlines() if line.strip()]


def parse_changes(text: str, starting_from: datetime.datetime | None = None) -> list[str]:
    """Relative paths from a changes.csv, keeping rows changed at or after `starting_from`."""
    since = _as_utc(starting_from) if starting_from else None
    paths = []
    for row in csv.reader(text.splitlines()):
        if len(row) < 2 or not row[0].strip():
            continue
        if since and _parse_timestamp(row[1]) < since:
            continue
        paths.append(row[0].strip())
    return paths


def feed_document_urls(feed: ROLIEFeed, starting_from: datetime.datetime | None = None) -> list[str]:
    since = _as_utc(starting_from) if starting_from else None
    return [e.content.src for e in feed.feed.entry if not since or _parse_timestamp(e.updated) >= since]


@dataclass(frozen=True)
class RetrievedProvider:
    """
    Validated provider metadata, and the entry point for retrieving every document it publishes.

    All fetch operations stream `Result`s: a failing index, feed or document never interrupts the
    stream, it shows up as a failed Result whose error names the stage and URL.
    """

    json: Provider
    data_source: DataSource = DataSource.UNSET

    @property
    def role(self) -> Role:
        return roles.for_provider(self.json.role)

    @classmethod
    def from_context(cls, ctx: RetrievalContext) -> RetrievedProvider:
        """Wrap a fetched provider-metadata.json, raising ValidationError if it does not meet its own role."""
        if not isinstance(ctx.document, Provider):
            raise TypeError(f"expected provider metadata, got {type(ctx.document).__name__}")
        provider = cls(json=ctx.document, data_source=ctx.data_source)
        validation = provider.role.check_role(ctx)
        if isinstance(validation, ValidationFailed):
            raise validation.to_exception()
        return provider

    @classmethod
    def load(cls, url: str, loader: CsafLoader, data_source: DataSource | None = None) -> RetrievedProvider:
        if data_source is None:
            data_source = data_source_for(url)
        return cls.from_context(loader.fetch_provider(url, data_source))

    @classmethod
    def from_url(cls, url: str, loader: CsafLoader) -> Result[RetrievedProvider]:
        def load() -> RetrievedProvider:
            try:
                return cls.load(url, loader)
            except Exception as e:
                raise RetrievalError(f"Failed to load CSAF provider from {url}", cause=e, url=url) from e

        return Result.of(load)

    @classmethod
    def from_domain(cls, domain: str, loader: CsafLoader) -> RetrievedProvider:
        """
        Discover and validate the provider metadata of a domain.

        The .well-known location is tried first, then every CSAF entry of the domain's security.txt
        in file order, then the csaf.data.security DNS convention. Metadata found at the .well-known
        location that fails its role requirements ends the resolution, later strategies are only
        tried when the well-known document could not be fetched.

        Raises:
            RetrievalError if the well-known metadata fails validation.
            ResolutionExhausted if no strategy produced valid metadata.

        """
        attempts: list[tuple[str, BaseException]] = []

        # 1. well-known
        url = well_known_url(domain)
        try:
            ctx = loader.fetch_provider(url, DataSource.WELL_KNOWN)
        except FetchError as e:
            logger.info(f"no provider metadata at {url} ({e}), falling back to security.txt")
            attempts.append(("Failed to fetch provider via .well-known", e))
        else:
            try:
                return cls.from_context(ctx)
            except CsafRetrievalError as e:
                raise RetrievalError(
                    f"Provider metadata at {url} does not meet the {ctx.document.role.value} role",  # type: ignore[union-attr]
                    cause=e,
                    url=url,
                ) from e

        # 2. security.txt
        try:
            candidates = loader.fetch_security_txt_csaf_urls(domain)
        except FetchError as e:
            logger.info(f"no security.txt for {domain} ({e}), falling back to DNS")
            attempts.append(("Failed to fetch security.txt", e))
        else:
            if not candidates:
                attempts.append(("No CSAF entry in security.txt", RetrievalError(f"security.txt of {domain} lists no CSAF entry")))
            for candidate in candidates:
                try:
                    return cls.load(candidate, loader, DataSource.SECURITY_TXT)
                except CsafRetrievalError as e:
                    logger.info(f"security.txt entry {candidate} did not yield a valid provider: {e}")
                    attempts.append((f"Failed to fetch and validate provider via security.txt entry {candidate}", e))

        # 3. DNS
        url = dns_url(domain)
        try:
            return cls.load(url, loader, DataSource.DNS)
        except CsafRetrievalError as e:
            attempts.append(("Failed to fetch and validate provider via DNS", e))

        error = ResolutionExhausted(domain, attempts)
        logger.error(str(error))
        raise error

    def fetch_document_indices(
        self,
        loader: CsafLoader,
        channel_capacity: int = DEFAULT_CHANNEL_CAPACITY,
        use_changes_csv: bool = False,
    ) -> Generator[tuple[str, Result[str]], None, None]:
        """Fetch index.txt (or changes.csv) of every directory distribution, yielding (directory_url, text)."""
        filename = "changes.csv" if use_changes_csv else "index.txt"
        directories = [d.rstrip("/") for d in self.json.directory_urls()]

        def fetch(directory_url: str) -> str:
            return loader.fetch_text(f"{directory_url}/{filename}")

        return fan_out(fetch, directories, channel_capacity, name="index")

    def fetch_rolie_feeds(
        self,
        loader: CsafLoader,
        channel_capacity: int = DEFAULT_CHANNEL_CAPACITY,
    ) -> Generator[tuple[Feed, Result[ROLIEFeed]], None, None]:
        return fan_out(lambda feed: loader.fetch_rolie_feed(feed.url), self.json.feeds(), channel_capacity, name="rolie")

    def fetch_all_document_urls(
        self,
        loader: CsafLoader,
        channel_capacity: int = DEFAULT_CHANNEL_CAPACITY,
        starting_from: datetime.datetime | None = None,
    ) -> Generator[Result[str], None, None]:
        """
        Stream the URL of every document listed by the directory indices and ROLIE feeds.

        A URL listed more than once is emitted once. A failing or unparseable index or feed is emitted
        as one failed Result per source while the other sources keep flowing. With `starting_from`,
        directories are read through changes.csv and both sources only report documents updated at or
        after that time. A ROLIE entry whose `updated` equals `starting_from` is kept, the same as a
        changes.csv row with that timestamp.
        """
        use_changes_csv = starting_from is not None
        filename = "changes.csv" if use_changes_csv else "index.txt"

        def from_indices() -> Generator[Result[str], None, None]:
            for directory_url, result in self.fetch_document_indices(loader, channel_capacity, use_changes_csv):
                if result.error is not None:
                    yield Result.failure(
                        RetrievalError(
                            f"Failed to fetch {filename} from directory at {directory_url}",
                            cause=result.error,
                            url=directory_url,
                        ),
                    )
                    continue
                try:
                    paths = parse_changes(result.value, starting_from) if use_changes_csv else parse_index(result.value)
                except (ValueError, csv.Error) as e:
                    yield Result.failure(
                        RetrievalError(f"Failed to parse {filename} from directory at {directory_url}", cause=e, url=directory_url),
                    )
                    continue
                for path in paths:
                    yield Result.success(f"{directory_url}/{path}")

        def from_feeds() -> Generator[Result[str], None, None]:
            for feed, result in self.fetch_rolie_feeds(loader, channel_capacity):
                if result.error is not None:
                    yield Result.failure(
                        RetrievalError(f"Failed to fetch ROLIE feed from {feed.url}", cause=result.error, url=feed.url),
                    )
                    continue
                try:
                    urls = feed_document_urls(result.value, starting_from)
                except ValueError as e:
                    yield Result.failure(RetrievalError(f"Failed to parse ROLIE feed from {feed.url}", cause=e, url=feed.url))
                    continue
                for url in urls:
                    yield Result.success(url)

        seen: set[str] = set()
        for result in merge(from_indices(), from_feeds(), capacity=channel_capacity, name="document-urls"):
            if result.is_success:
                if result.value in seen:
                    continue
                seen.add(result.value)
            yield result

    def fetch_documents(
        self,
        loader: CsafLoader,
        channel_capacity: int = DEFAULT_CHANNEL_CAPACITY,
        starting_from: datetime.datetime | None = None,
    ) -> Generator[Result[RetrievedDocument], None, None]:
        """
        Fetch and validate every document, yielding exactly one Result per entry of `fetch_all_document_urls`.

        Index or feed failures are passed through unchanged; a document that cannot be fetched or does not
        meet the role's document requirements fails with a RetrievalError naming its URL.
        """
        role = self.role

        def fetch(url_result: Result[str]) -> RetrievedDocument:
            url = url_result.get_or_raise()
            return RetrievedDocument.load(url, loader, role)

        urls = self.fetch_all_document_urls(loader, channel_capacity, starting_from)
        for _, result in fan_out(fetch, urls, channel_capacity, name="document"):
            yield result

    def count_expected_documents(
        self,
        loader: CsafLoader,
        channel_capacity: int = DEFAULT_CHANNEL_CAPACITY,
        starting_from: datetime.datetime | None = None,
    ) -> int:
        return sum(1 for r in self.fetch_all_document_urls(loader, channel_capacity, starting_from) if r.is_success)
