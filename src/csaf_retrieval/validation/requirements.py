"""
The numbered requirements of CSAF 2.0 section 7.1.

Only the requirements that can be decided from a single fetch are checked here; the others are
placeholders that always succeed so that role definitions can already reference them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from csaf_retrieval.context import DataSource
from csaf_retrieval.utils.csaf_types import Csaf, TLPLabel
from csaf_retrieval.validation.requirement import Requirement
from csaf_retrieval.validation.result import NOT_APPLICABLE, SUCCESSFUL, ValidationResult, failed

if TYPE_CHECKING:
    from csaf_retrieval.context import RetrievalContext

_FILENAME_INVALID_CHARS = re.compile(r"[^+\-a-z0-9]+")


def expected_filename(tracking_id: str) -> str:
    return _FILENAME_INVALID_CHARS.sub("_", tracking_id.lower()) + ".json"


@dataclass(frozen=True)
class NumberedRequirement(Requirement):
    number: int
    title: str

    def __str__(self) -> str:
        return f"Requirement {self.number}: {self.title}"


class Unimplemented(NumberedRequirement):
    def check(self, ctx: RetrievalContext) -> ValidationResult:
        return SUCCESSFUL


class ValidCsafDocument(NumberedRequirement):
    def check(self, ctx: RetrievalContext) -> ValidationResult:
        if isinstance(ctx.document, Csaf):
            return SUCCESSFUL
        return failed("We do not have a valid CSAF document")


class Filename(NumberedRequirement):
    def check(self, ctx: RetrievalContext) -> ValidationResult:
        doc = ctx.document
        if not isinstance(doc, Csaf):
            return NOT_APPLICABLE
        should = expected_filename(doc.document.tracking.id)
        actual = ctx.http_response.filename if ctx.http_response else ""
        if actual != should:
            return failed(f'Filename "{actual}" does not match conformance, expected "{should}"')
        return SUCCESSFUL


class UsageOfTls(NumberedRequirement):
    def check(self, ctx: RetrievalContext) -> ValidationResult:
        if ctx.http_response is None:
            return NOT_APPLICABLE
        if ctx.http_response.scheme == "https":
            return SUCCESSFUL
        return failed("JSON was not retrieved via HTTPS")


class TlpWhiteAccessible(NumberedRequirement):
    def check(self, ctx: RetrievalContext) -> ValidationResult:
        doc = ctx.document
        if not isinstance(doc, Csaf) or doc.document.tlp_label() != TLPLabel.WHITE:
            return NOT_APPLICABLE
        response = ctx.http_response
        if response is None:
            return failed("No HTTP response recorded for TLP:WHITE document")
        if response.has_request_header("Authorization"):
            return failed("TLP:WHITE document is not freely accessible (request was authorized)")
        if not response.is_success:
            return failed(f"TLP:WHITE document is not freely accessible (HTTP {response.status_code})")
        return SUCCESSFUL


class DiscoveredVia(NumberedRequirement):
    """Successful only when the metadata was found through one specific discovery method."""

    source: DataSource = DataSource.UNSET
    message: str = ""

    def check(self, ctx: RetrievalContext) -> ValidationResult:
        if ctx.data_source == self.source:
            return SUCCESSFUL
        return failed(self.message)


class SecurityTxt(DiscoveredVia):
    source = DataSource.SECURITY_TXT
    message = "Not resolved via security.txt"


class WellKnownUrl(DiscoveredVia):
    source = DataSource.WELL_KNOWN
    message = "Not resolved via .well-known"


class DnsPath(DiscoveredVia):
    source = DataSource.DNS
    message = "Not resolved via CSAF domain (csaf.data.security.domain.tld)"


VALID_CSAF_DOCUMENT = ValidCsafDocument(1, "Valid CSAF document")
FILENAME = Filename(2, "Filename")
USAGE_OF_TLS = UsageOfTls(3, "TLS")
TLP_WHITE = TlpWhiteAccessible(4, "TLP:WHITE")
TLP_AMBER_RED = Unimplemented(5, "TLP:AMBER and TLP:RED")
NO_REDIRECTS = Unimplemented(6, "No redirects")
PROVIDER_METADATA = Unimplemented(7, "provider-metadata.json")
SECURITY_TXT = SecurityTxt(8, "security.txt")
WELL_KNOWN_URL = WellKnownUrl(9, "Well-known URL for provider-metadata.json")
DNS_PATH = DnsPath(10, "DNS path")
ONE_FOLDER_PER_YEAR = Unimplemented(11, "One folder per year")
INDEX_TXT = Unimplemented(12, "index.txt")
CHANGES_CSV = Unimplemented(13, "changes.csv")
DIRECTORY_LISTINGS = Unimplemented(14, "Directory listings")
ROLIE_FEED = Unimplemented(15, "ROLIE feed")
ROLIE_SERVICE_DOCUMENT = Unimplemented(16, "ROLIE service document")
ROLIE_CATEGORY_DOCUMENT = Unimplemented(17, "ROLIE category document")
INTEGRITY = Unimplemented(18, "Integrity")
SIGNATURES = Unimplemented(19, "Signatures")
PUBLIC_OPENPGP_KEY = Unimplemented(20, "Public OpenPGP Key")
LIST_OF_CSAF_PROVIDERS = Unimplemented(21, "List of CSAF providers")
TWO_DISJOINT_ISSUING_PARTIES = Unimplemented(22, "Two disjoint issuing parties")
MIRROR = Unimplemented(23, "Mirror")

BY_NUMBER: dict[int, NumberedRequirement] = {
    r.number: r
    for r in (
        VALID_CSAF_DOCUMENT,
        FILENAME,
        USAGE_OF_TLS,
        TLP_WHITE,
        TLP_AMBER_RED,
        NO_REDIRECTS,
        PROVIDER_METADATA,
        SECURITY_TXT,
        WELL_KNOWN_URL,
        DNS_PATH,
        ONE_FOLDER_PER_YEAR,
        INDEX_TXT,
        CHANGES_CSV,
        DIRECTORY_LISTINGS,
        ROLIE_FEED,
        ROLIE_SERVICE_DOCUMENT,
        ROLIE_CATEGORY_DOCUMENT,
        INTEGRITY,
        SIGNATURES,
        PUBLIC_OPENPGP_KEY,
        LIST_OF_CSAF_PROVIDERS,
        TWO_DISJOINT_ISSUING_PARTIES,
        MIRROR,
    )
}
