from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import TYPE_CHECKING

from csaf_retrieval.errors import RetrievalError
from csaf_retrieval.result import Result
from csaf_retrieval.utils.csaf_types import Csaf
from csaf_retrieval.validation.result import NOT_APPLICABLE, ValidationFailed, ValidationResult
from csaf_retrieval.validation.roles import PUBLISHER, Role

if TYPE_CHECKING:
    from csaf_retrieval.context import RetrievalContext
    from csaf_retrieval.loader import CsafLoader


@dataclass(frozen=True)
class RetrievedDocument:
    """A CSAF advisory together with where it came from and how it validated."""

    json: Csaf
    url: str
    validation: ValidationResult = NOT_APPLICABLE

    @property
    def tracking_id(self) -> str:
        return self.json.document.tracking.id

    @property
    def unique_id(self) -> str:
        """An identifier that stays unique across publishers: CSAF-<namespace hash>-<tracking id>."""
        namespace_hash = hashlib.sha256(self.json.document.publisher.namespace.encode("utf-8")).hexdigest()[:8]
        return f"CSAF-{namespace_hash}-{self.tracking_id}"

    @classmethod
    def from_context(cls, ctx: RetrievalContext, url: str, role: Role = PUBLISHER) -> RetrievedDocument:
        """Check the fetched document against the role's document requirements, raising ValidationError on failure."""
        if not isinstance(ctx.document, Csaf):
            raise TypeError(f"expected a CSAF advisory from {url}, got {type(ctx.document).__name__}")
        validation = role.check_document(ctx)
        if isinstance(validation, ValidationFailed):
            raise validation.to_exception()
        return cls(json=ctx.document, url=url, validation=validation)

    @classmethod
    def load(cls, url: str, loader: CsafLoader, role: Role = PUBLISHER) -> RetrievedDocument:
        try:
            return cls.from_context(loader.fetch_document(url), url, role)
        except Exception as e:
            raise RetrievalError(f"Failed to load CSAF document from {url}", cause=e, url=url) from e

    @classmethod
    def from_url(cls, url: str, loader: CsafLoader, role: Role = PUBLISHER) -> Result[RetrievedDocument]:
        return Result.of(cls.load, url, loader, role)

    @classmethod
    def from_json(cls, text: str | bytes, url: str) -> Result[RetrievedDocument]:
        """
        Parse an advisory that was obtained out of band (e.g. read from disk).

        Without an HTTP exchange there is no evidence to check the document requirements against,
        so the validation is left as not applicable.
        """

        def parse() -> RetrievedDocument:
            try:
                return cls(json=Csaf.from_json(text), url=url)
            except Exception as e:
                raise RetrievalError(f"Failed to parse CSAF document from {url}", cause=e, url=url) from e

        return Result.of(parse)
