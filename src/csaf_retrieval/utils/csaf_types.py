import enum
from collections.abc import Generator as IterGenerator
from dataclasses import dataclass, field
from typing import Union

from mashumaro import field_options
from mashumaro.config import BaseConfig
from mashumaro.mixins.orjson import DataClassORJSONMixin


class OmitNoneORJSONModel(DataClassORJSONMixin):
    class Config(BaseConfig):
        omit_none = True


class TLPLabel(str, enum.Enum):
    WHITE = "WHITE"
    GREEN = "GREEN"
    AMBER = "AMBER"
    RED = "RED"


class ProviderRole(str, enum.Enum):
    PUBLISHER = "csaf_publisher"
    PROVIDER = "csaf_provider"
    TRUSTED_PROVIDER = "csaf_trusted_provider"


class AggregatorCategory(str, enum.Enum):
    AGGREGATOR = "aggregator"
    LISTER = "lister"


@dataclass
class Publisher(OmitNoneORJSONModel):
    category: str
    name: str
    namespace: str
    contact_details: str | None = None
    issuing_authority: str | None = None


# provider-metadata.json


@dataclass
class Feed(OmitNoneORJSONModel):
    url: str
    tlp_label: str | None = None
    summary: str | None = None


@dataclass
class Rolie(OmitNoneORJSONModel):
    feeds: list[Feed] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    services: list[str] = field(default_factory=list)


@dataclass
class ProviderDistribution(OmitNoneORJSONModel):
    directory_url: str | None = None
    rolie: Rolie | None = None


@dataclass
class Provider(OmitNoneORJSONModel):
    canonical_url: str
    last_updated: str
    metadata_version: str
    publisher: Publisher
    role: ProviderRole
    distributions: list[ProviderDistribution] = field(default_factory=list)
    list_on_CSAF_aggregators: bool = True  # noqa: N815 - key name from the CSAF schema
    mirror_on_CSAF_aggregators: bool = True  # noqa: N815 - key name from the CSAF schema

    def directory_urls(self) -> list[str]:
        return [d.directory_url for d in self.distributions if d.directory_url]

    def feeds(self) -> list[Feed]:
        return [f for d in self.distributions if d.rolie for f in d.rolie.feeds]


# aggregator.json


@dataclass
class AggregatorInfo(OmitNoneORJSONModel):
    category: AggregatorCategory
    name: str
    namespace: str | None = None
    contact_details: str | None = None
    issuing_authority: str | None = None


@dataclass
class ListedMetadata(OmitNoneORJSONModel):
    url: str
    last_updated: str | None = None
    publisher: Publisher | None = None
    role: ProviderRole | None = None


@dataclass
class ListedEntry(OmitNoneORJSONModel):
    metadata: ListedMetadata
    mirrors: list[str] = field(default_factory=list)
    update_interval: str | None = None


@dataclass
class Aggregator(OmitNoneORJSONModel):
    aggregator: AggregatorInfo
    aggregator_version: str
    canonical_url: str
    last_updated: str
    csaf_providers: list[ListedEntry] = field(default_factory=list)
    csaf_publishers: list[ListedEntry] = field(default_factory=list)


# ROLIE (Atom in JSON) feed


@dataclass
class EntryContent(OmitNoneORJSONModel):
    src: str
    type: str = "application/json"


@dataclass
class Entry(OmitNoneORJSONModel):
    id: str
    title: str
    updated: str
    content: EntryContent
    published: str | None = None


@dataclass
class FeedBody(OmitNoneORJSONModel):
    id: str
    title: str
    updated: str
    entry: list[Entry] = field(default_factory=list)


@dataclass
class ROLIEFeed(OmitNoneORJSONModel):
    feed: FeedBody


# advisory document


@dataclass
class CVSS_V3(DataClassORJSONMixin):
    base_score: float = field(metadata=field_options(alias="baseScore"))
    base_severity: str = field(metadata=field_options(alias="baseSeverity"))
    vector_string: str = field(metadata=field_options(alias="vectorString"))
    version: str = field(metadata=field_options(alias="version"))

    class Config(BaseConfig):
        serialize_by_alias = True  # normal CSAF is snake_case, but embeds camelCase CVSS objects


@dataclass
class CVSS_V2(DataClassORJSONMixin):
    base_score: float = field(metadata=field_options(alias="baseScore"))
    vector_string: str = field(metadata=field_options(alias="vectorString"))
    version: str = field(metadata=field_options(alias="version"))

    class Config(BaseConfig):
        serialize_by_alias = True


@dataclass
class Score(OmitNoneORJSONModel):
    products: list[str]
    cvss_v3: CVSS_V3 | None = None
    cvss_v2: CVSS_V2 | None = None


@dataclass
class Vulnerability(OmitNoneORJSONModel):
    cve: str | None = None
    title: str | None = None
    scores: list[Score] = field(default_factory=list)

    def vectors(self) -> IterGenerator[str, None, None]:
        for s in self.scores:
            if s.cvss_v3:
                yield s.cvss_v3.vector_string
            if s.cvss_v2:
                yield s.cvss_v2.vector_string


@dataclass
class TLP(OmitNoneORJSONModel):
    label: TLPLabel
    url: str | None = None


@dataclass
class Distribution(OmitNoneORJSONModel):
    text: str | None = None
    tlp: TLP | None = None


@dataclass
class RevisionEntry(OmitNoneORJSONModel):
    date: str
    number: str  # yes, really
    summary: str


@dataclass
class Tracking(OmitNoneORJSONModel):
    id: str
    current_release_date: str
    initial_release_date: str
    status: str
    version: str
    revision_history: list[RevisionEntry] = field(default_factory=list)


@dataclass
class Document(OmitNoneORJSONModel):
    category: str
    csaf_version: str
    publisher: Publisher
    title: str
    tracking: Tracking
    distribution: Distribution | None = None
    lang: str | None = None

    def tlp_label(self) -> TLPLabel | None:
        if self.distribution and self.distribution.tlp:
            return self.distribution.tlp.label
        return None


@dataclass
class Csaf(OmitNoneORJSONModel):
    document: Document
    vulnerabilities: list[Vulnerability] = field(default_factory=list)


CsafDocumentType = Union[Provider, Aggregator, Csaf]  # noqa: UP007


def from_path(path: str) -> Csaf:
    with open(path) as fh:
        return Csaf.from_json(fh.read())
