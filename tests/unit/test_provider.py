from __future__ import annotations

import datetime
import time

import pytest
from pytest_unordered import unordered

from csaf_retrieval.context import DataSource, RetrievalContext
from csaf_retrieval.errors import HTTPStatusError, NetworkError, ResolutionExhausted, RetrievalError, ValidationError
from csaf_retrieval.provider import RetrievedProvider, data_source_for, parse_changes, parse_index
from csaf_retrieval.validation.requirement import Requirement, none
from csaf_retrieval.validation.result import ValidationResult, failed
from csaf_retrieval.validation.roles import PROVIDER, Role

WELL_KNOWN = "https://example.com/.well-known/csaf/provider-metadata.json"
DIRECTORY = "https://example.com/directory"
FEED = "https://example.com/rolie/feed.json"
DOC_1 = f"{DIRECTORY}/bsi-2022-0001.json"
DOC_2 = f"{DIRECTORY}/bsi-2022-0002.json"
DOC_BAD_NAME = f"{DIRECTORY}/bsi-2022_2-01.json"


@pytest.fixture()
def example_com(helpers, fake_session):
    def fixture(name: str) -> str:
        return helpers.local_dir(f"test-fixtures/example.com/{name}")

    fake_session.add_file(f"{DIRECTORY}/index.txt", fixture("directory/index.txt"))
    fake_session.add_file(f"{DIRECTORY}/changes.csv", fixture("directory/changes.csv"))
    fake_session.add_file(FEED, fixture("rolie/feed.json"))
    for doc in ("bsi-2022-0001.json", "bsi-2022-0002.json", "bsi-2022_2-01.json"):
        fake_session.add_file(f"{DIRECTORY}/{doc}", fixture(f"directory/{doc}"))
    return fixture


@pytest.fixture()
def provider(example_com, fake_session, loader):
    fake_session.add_file(WELL_KNOWN, example_com("provider-metadata.json"))
    return RetrievedProvider.from_domain("example.com", loader)


class Rejecting(Requirement):
    def check(self, ctx: RetrievalContext) -> ValidationResult:
        return failed("metadata rejected")


class TestResolution:
    def test_well_known(self, provider, fake_session):
        assert provider.data_source == DataSource.WELL_KNOWN
        assert provider.role is PROVIDER
        assert fake_session.calls == [WELL_KNOWN]

    def test_falls_back_to_security_txt(self, example_com, fake_session, loader):
        fake_session.add_file("https://example.com/.well-known/security.txt", example_com("security.txt"))
        fake_session.add_file("https://example.com/csaf/provider-metadata.json", example_com("provider-metadata.json"))

        provider = RetrievedProvider.from_domain("example.com", loader)

        assert provider.data_source == DataSource.SECURITY_TXT
        assert fake_session.calls == [
            WELL_KNOWN,
            "https://example.com/.well-known/security.txt",
            "https://example.com/broken/provider-metadata.json",
            "https://example.com/csaf/provider-metadata.json",
        ]

    def test_falls_back_to_dns(self, example_com, fake_session, loader):
        fake_session.add_file("https://csaf.data.security.example.com", example_com("provider-metadata.json"))

        provider = RetrievedProvider.from_domain("example.com", loader)

        assert provider.data_source == DataSource.DNS
        assert fake_session.calls == [
            WELL_KNOWN,
            "https://example.com/.well-known/security.txt",
            "https://example.com/security.txt",
            "https://csaf.data.security.example.com",
        ]

    def test_security_txt_without_working_entries_falls_back_to_dns(self, example_com, fake_session, loader):
        fake_session.add("https://example.com/.well-known/security.txt", "CSAF: https://example.com/broken/provider-metadata.json\n")
        fake_session.add_file("https://csaf.data.security.example.com", example_com("provider-metadata.json"))

        assert RetrievedProvider.from_domain("example.com", loader).data_source == DataSource.DNS

    def test_every_strategy_exhausted(self, fake_session, loader):
        with pytest.raises(ResolutionExhausted) as e:
            RetrievedProvider.from_domain("example.com", loader)

        error = e.value
        assert str(error).splitlines()[0] == "Failed to resolve provider for example.com via .well-known, security.txt or DNS."
        assert len(error.attempts) == 3
        assert isinstance(error.__cause__, HTTPStatusError)
        assert error.__cause__.url == "https://csaf.data.security.example.com"
        assert "https://csaf.data.security.example.com" in str(error)

    def test_invalid_well_known_metadata_aborts(self, example_com, fake_session, loader, monkeypatch):
        rejecting = Role(name="rejecting", role_requirements=Rejecting(), document_requirements=none())
        monkeypatch.setattr(RetrievedProvider, "role", property(lambda self: rejecting))
        fake_session.add_file(WELL_KNOWN, example_com("provider-metadata.json"))
        fake_session.add_file("https://csaf.data.security.example.com", example_com("provider-metadata.json"))

        with pytest.raises(RetrievalError) as e:
            RetrievedProvider.from_domain("example.com", loader)

        assert not isinstance(e.value, ResolutionExhausted)
        assert isinstance(e.value.__cause__, ValidationError)
        assert e.value.__cause__.errors == ["metadata rejected"]
        assert fake_session.calls == [WELL_KNOWN]

    def test_from_url(self, example_com, fake_session, loader):
        fake_session.add_file(WELL_KNOWN, example_com("provider-metadata.json"))

        result = RetrievedProvider.from_url(WELL_KNOWN, loader)

        assert result.is_success
        assert result.get_or_raise().data_source == DataSource.WELL_KNOWN

    def test_from_url_failure(self, loader):
        result = RetrievedProvider.from_url("https://example.com/nope.json", loader)
        assert result.is_failure
        assert str(result.exception()) == "Failed to load CSAF provider from https://example.com/nope.json"
        assert isinstance(result.exception().__cause__, HTTPStatusError)

    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            (WELL_KNOWN, DataSource.WELL_KNOWN),
            ("https://csaf.data.security.example.com", DataSource.DNS),
            ("https://csaf.data.security.example.com/provider-metadata.json", DataSource.DNS),
            ("https://example.com/csaf/provider-metadata.json", DataSource.UNSET),
        ],
    )
    def test_data_source_for(self, url, expected):
        assert data_source_for(url) == expected


class TestDocumentRetrieval:
    def test_document_indices(self, provider, loader):
        indices = dict(provider.fetch_document_indices(loader))

        assert set(indices) == {DIRECTORY, "https://example.com/invalid-directory"}
        assert parse_index(indices[DIRECTORY].get_or_raise()) == ["bsi-2022-0001.json", "bsi-2022_2-01.json"]
        assert isinstance(indices["https://example.com/invalid-directory"].exception(), HTTPStatusError)

    def test_rolie_feeds(self, provider, loader):
        feeds = list(provider.fetch_rolie_feeds(loader))

        assert len(feeds) == 1
        feed, result = feeds[0]
        assert feed.url == FEED
        assert len(result.get_or_raise().feed.entry) == 2

    def test_expected_documents(self, provider, loader):
        assert provider.count_expected_documents(loader) == 3

    def test_document_urls_are_deduplicated(self, provider, loader):
        results = list(provider.fetch_all_document_urls(loader))

        successes = [r.get_or_raise() for r in results if r.is_success]
        assert successes == unordered([DOC_1, DOC_BAD_NAME, DOC_2])

        failures = [r.exception() for r in results if r.is_failure]
        assert len(failures) == 1
        assert isinstance(failures[0], RetrievalError)
        assert str(failures[0]) == "Failed to fetch index.txt from directory at https://example.com/invalid-directory"
        assert isinstance(failures[0].__cause__, HTTPStatusError)
        assert failures[0].__cause__.status_code == 404

    def test_documents(self, provider, loader):
        results = list(provider.fetch_documents(loader))

        assert len(results) == 4
        assert [r.get_or_raise().url for r in results if r.is_success] == unordered([DOC_1, DOC_2])

        failures = [r.exception() for r in results if r.is_failure]
        validation = [e for e in failures if isinstance(e.__cause__, ValidationError)]
        assert len(validation) == 1
        assert str(validation[0]) == f"Failed to load CSAF document from {DOC_BAD_NAME}"
        assert validation[0].url == DOC_BAD_NAME
        assert validation[0].__cause__.errors == [
            'Filename "bsi-2022_2-01.json" does not match conformance, expected "bsi-2022-0001.json"',
        ]

        index = [e for e in failures if "invalid-directory" in str(e)]
        assert len(index) == 1

    def test_unreachable_documents(self, provider, fake_session, loader):
        fake_session.add(f"{DIRECTORY}/index.txt", "bsi-2022-0001.json\n2024/does-not-exist.json\nunreachable.json\n")
        fake_session.add_error(f"{DIRECTORY}/unreachable.json", NetworkError(f"{DIRECTORY}/unreachable.json", "refused"))

        results = {(r.exception().url if r.is_failure else r.get_or_raise().url): r for r in provider.fetch_documents(loader)}

        missing = results[f"{DIRECTORY}/2024/does-not-exist.json"].exception()
        assert str(missing) == f"Failed to load CSAF document from {DIRECTORY}/2024/does-not-exist.json"
        assert isinstance(missing.__cause__, HTTPStatusError)
        assert isinstance(results[f"{DIRECTORY}/unreachable.json"].exception().__cause__, NetworkError)
        assert results[DOC_1].is_success
        assert results[DOC_2].is_success

    def test_cardinality_matches_url_stream(self, provider, fake_session, loader):
        fake_session.add(f"{DIRECTORY}/index.txt", "\n".join(f"doc-{i}.json" for i in range(40)) + "\n")

        urls = list(provider.fetch_all_document_urls(loader, channel_capacity=3))
        documents = list(provider.fetch_documents(loader, channel_capacity=3))

        assert len(documents) == len(urls) == 43

    def test_starting_from(self, provider, fake_session, loader):
        since = datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)

        results = list(provider.fetch_all_document_urls(loader, starting_from=since))

        assert [r.get_or_raise() for r in results if r.is_success] == unordered([DOC_BAD_NAME, DOC_2])
        failures = [str(r.exception()) for r in results if r.is_failure]
        assert failures == ["Failed to fetch changes.csv from directory at https://example.com/invalid-directory"]
        assert fake_session.count(f"{DIRECTORY}/index.txt") == 0
        assert provider.count_expected_documents(loader, starting_from=since) == 2

    def test_starting_from_includes_boundary(self, provider, loader):
        # the ROLIE entry of DOC_2 was updated at exactly this instant
        since = datetime.datetime(2024, 1, 3, 8, 0, 0, tzinfo=datetime.timezone.utc)

        urls = [r.get_or_raise() for r in provider.fetch_all_document_urls(loader, starting_from=since) if r.is_success]

        assert urls == unordered([DOC_BAD_NAME, DOC_2])

    def test_malformed_changes_csv(self, provider, fake_session, loader):
        fake_session.add(f"{DIRECTORY}/changes.csv", '"a.json","2024-02-01T00:00:00Z"\n"b.json","not-a-date"\n')
        since = datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)

        results = list(provider.fetch_all_document_urls(loader, starting_from=since))

        assert [r.get_or_raise() for r in results if r.is_success] == [DOC_2]
        failures = [r.exception() for r in results if r.is_failure]
        assert [str(e) for e in failures] == unordered(
            [
                f"Failed to parse changes.csv from directory at {DIRECTORY}",
                "Failed to fetch changes.csv from directory at https://example.com/invalid-directory",
            ],
        )
        parse_failure = next(e for e in failures if e.url == DIRECTORY)
        assert isinstance(parse_failure.__cause__, ValueError)

    def test_malformed_rolie_timestamp(self, helpers, provider, fake_session, loader):
        feed = helpers.read("test-fixtures/example.com/rolie/feed.json").replace("2022-03-17T13:03:42Z", "yesterday")
        fake_session.add(FEED, feed)
        since = datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)

        results = list(provider.fetch_all_document_urls(loader, starting_from=since))

        assert [r.get_or_raise() for r in results if r.is_success] == [DOC_BAD_NAME]
        assert f"Failed to parse ROLIE feed from {FEED}" in [str(r.exception()) for r in results if r.is_failure]

    def test_closing_the_stream_early(self, provider, fake_session, loader):
        fake_session.add(f"{DIRECTORY}/index.txt", "\n".join(f"doc-{i}.json" for i in range(2000)) + "\n")

        def document_requests() -> int:
            return sum(1 for url in list(fake_session.calls) if url.startswith(f"{DIRECTORY}/doc-"))

        stream = provider.fetch_documents(loader, channel_capacity=2)
        next(stream)
        stream.close()

        time.sleep(0.5)
        after_close = document_requests()
        time.sleep(0.5)

        assert after_close <= 10
        assert document_requests() == after_close


def test_parse_index_ignores_blank_lines():
    assert parse_index("a.json\r\nb.json\n\n") == ["a.json", "b.json"]


def test_parse_changes():
    text = '"2024/a.json","2024-02-01T00:00:00Z"\n"2023/b.json","2023-12-31T23:59:59Z"\n'
    assert parse_changes(text) == ["2024/a.json", "2023/b.json"]
    assert parse_changes(text, datetime.datetime(2024, 1, 1)) == ["2024/a.json"]
