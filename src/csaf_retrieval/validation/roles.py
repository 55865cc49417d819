from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from csaf_retrieval.utils.csaf_types import AggregatorCategory, ProviderRole
from csaf_retrieval.validation import requirements as req
from csaf_retrieval.validation.requirement import Requirement, all_of, none, one_of

if TYPE_CHECKING:
    from csaf_retrieval.context import RetrievalContext
    from csaf_retrieval.validation.result import ValidationResult


@dataclass(frozen=True)
class Role:
    """
    A CSAF role: the requirements the metadata (and its discovery) must meet, plus the
    requirements every document published under the role must meet.
    """

    name: str
    role_requirements: Requirement
    document_requirements: Requirement

    def check_role(self, ctx: RetrievalContext) -> ValidationResult:
        return self.role_requirements.check(ctx)

    def check_document(self, ctx: RetrievalContext) -> ValidationResult:
        return self.document_requirements.check(ctx)


PUBLISHER = Role(
    name="CSAF publisher",
    role_requirements=none(),
    document_requirements=all_of(req.VALID_CSAF_DOCUMENT, req.FILENAME, req.USAGE_OF_TLS, req.TLP_WHITE),
)

PROVIDER = Role(
    name="CSAF provider",
    role_requirements=(
        PUBLISHER.role_requirements
        + all_of(req.NO_REDIRECTS, req.PROVIDER_METADATA)
        + one_of(req.SECURITY_TXT, req.WELL_KNOWN_URL, req.DNS_PATH)
        + (
            all_of(req.ONE_FOLDER_PER_YEAR, req.INDEX_TXT, req.CHANGES_CSV, req.DIRECTORY_LISTINGS)
            | all_of(req.ROLIE_FEED, req.ROLIE_SERVICE_DOCUMENT, req.ROLIE_CATEGORY_DOCUMENT)
        )
    ),
    document_requirements=PUBLISHER.document_requirements + req.TLP_AMBER_RED,
)

TRUSTED_PROVIDER = Role(
    name="CSAF trusted provider",
    role_requirements=PROVIDER.role_requirements + req.PUBLIC_OPENPGP_KEY,
    document_requirements=PROVIDER.document_requirements + all_of(req.INTEGRITY, req.SIGNATURES),
)

LISTER = Role(
    name="CSAF lister",
    role_requirements=all_of(req.NO_REDIRECTS, req.LIST_OF_CSAF_PROVIDERS, req.TWO_DISJOINT_ISSUING_PARTIES),
    document_requirements=none(),
)

AGGREGATOR = Role(
    name="CSAF aggregator",
    role_requirements=LISTER.role_requirements + req.MIRROR,
    document_requirements=all_of(
        req.VALID_CSAF_DOCUMENT,
        req.FILENAME,
        req.USAGE_OF_TLS,
        req.TLP_WHITE,
        req.TLP_AMBER_RED,
        req.INTEGRITY,
        req.SIGNATURES,
    ),
)

_PROVIDER_ROLES = {
    ProviderRole.PUBLISHER: PUBLISHER,
    ProviderRole.PROVIDER: PROVIDER,
    ProviderRole.TRUSTED_PROVIDER: TRUSTED_PROVIDER,
}

_AGGREGATOR_ROLES = {
    AggregatorCategory.LISTER: LISTER,
    AggregatorCategory.AGGREGATOR: AGGREGATOR,
}


def for_provider(role: ProviderRole) -> Role:
    return _PROVIDER_ROLES[role]


def for_aggregator(category: AggregatorCategory) -> Role:
    return _AGGREGATOR_ROLES[category]
