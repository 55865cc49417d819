from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from csaf_retrieval.errors import RetrievalError
from csaf_retrieval.provider import RetrievedProvider
from csaf_retrieval.result import Result
from csaf_retrieval.utils.concurrency import DEFAULT_CHANNEL_CAPACITY, fan_out
from csaf_retrieval.utils.csaf_types import Aggregator
from csaf_retrieval.validation import roles
from csaf_retrieval.validation.result import ValidationFailed

if TYPE_CHECKING:
    from csaf_retrieval.context import RetrievalContext
    from csaf_retrieval.loader import CsafLoader
    from csaf_retrieval.utils.csaf_types import ListedEntry
    from csaf_retrieval.validation.roles import Role

logger = logging.getLogger("aggregator-resolver")


def aggregator_url(domain: str) -> str:
    return f"https://{domain}/.well-known/csaf-aggregator/aggregator.json"


@dataclass(frozen=True)
class RetrievedAggregator:
    json: Aggregator

    @property
    def role(self) -> Role:
        return roles.for_aggregator(self.json.aggregator.category)

    @classmethod
    def from_context(cls, ctx: RetrievalContext) -> RetrievedAggregator:
        if not isinstance(ctx.document, Aggregator):
            raise TypeError(f"expected aggregator metadata, got {type(ctx.document).__name__}")
        aggregator = cls(json=ctx.document)
        validation = aggregator.role.check_role(ctx)
        if isinstance(validation, ValidationFailed):
            raise validation.to_exception()
        return aggregator

    @classmethod
    def load(cls, url: str, loader: CsafLoader) -> RetrievedAggregator:
        try:
            return cls.from_context(loader.fetch_aggregator(url))
        except Exception as e:
            raise RetrievalError(f"Failed to load CSAF Aggregator from {url}", cause=e, url=url) from e

    @classmethod
    def from_url(cls, url: str, loader: CsafLoader) -> Result[RetrievedAggregator]:
        return Result.of(cls.load, url, loader)

    @classmethod
    def from_domain(cls, domain: str, loader: CsafLoader) -> Result[RetrievedAggregator]:
        return cls.from_url(aggregator_url(domain), loader)

    def _fetch_listed(
        self,
        entries: list[ListedEntry],
        loader: CsafLoader,
        channel_capacity: int,
        kind: str,
    ) -> list[Result[RetrievedProvider]]:
        # fan_out yields in completion order, report in listing order instead
        urls = [e.metadata.url for e in entries]
        by_index: dict[int, Result[RetrievedProvider]] = {}
        for (i, url), result in fan_out(
            lambda item: RetrievedProvider.from_url(item[1], loader).get_or_raise(),
            list(enumerate(urls)),
            channel_capacity,
            name=kind,
        ):
            if result.is_failure:
                logger.warning(f"unable to load {kind} {url}: {result.error}")
            by_index[i] = result
        return [by_index[i] for i in range(len(urls))]

    def fetch_providers(
        self,
        loader: CsafLoader,
        channel_capacity: int = DEFAULT_CHANNEL_CAPACITY,
    ) -> list[Result[RetrievedProvider]]:
        return self._fetch_listed(self.json.csaf_providers, loader, channel_capacity, "provider")

    def fetch_publishers(
        self,
        loader: CsafLoader,
        channel_capacity: int = DEFAULT_CHANNEL_CAPACITY,
    ) -> list[Result[RetrievedProvider]]:
        return self._fetch_listed(self.json.csaf_publishers, loader, channel_capacity, "publisher")

    def fetch_all(
        self,
        loader: CsafLoader,
        channel_capacity: int = DEFAULT_CHANNEL_CAPACITY,
    ) -> list[Result[RetrievedProvider]]:
        return self.fetch_providers(loader, channel_capacity) + self.fetch_publishers(loader, channel_capacity)
