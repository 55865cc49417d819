from __future__ import annotations

import hashlib

import pytest

from csaf_retrieval.document import RetrievedDocument
from csaf_retrieval.errors import HTTPStatusError, RetrievalError, ValidationError
from csaf_retrieval.validation.result import NOT_APPLICABLE, SUCCESSFUL
from csaf_retrieval.validation.roles import LISTER

DIRECTORY = "https://example.com/directory"


@pytest.fixture()
def documents(helpers, fake_session):
    for doc in ("bsi-2022-0001.json", "bsi-2022_2-01.json"):
        fake_session.add_file(f"{DIRECTORY}/{doc}", helpers.local_dir(f"test-fixtures/example.com/directory/{doc}"))


def test_from_url(documents, loader):
    result = RetrievedDocument.from_url(f"{DIRECTORY}/bsi-2022-0001.json", loader)

    document = result.get_or_raise()
    assert document.url == f"{DIRECTORY}/bsi-2022-0001.json"
    assert document.tracking_id == "BSI-2022-0001"
    assert document.validation == SUCCESSFUL
    assert document.json.document.title == "CVRF-CSAF-Converter: XML External Entities Vulnerability"


def test_from_url_validation_failure(documents, loader):
    result = RetrievedDocument.from_url(f"{DIRECTORY}/bsi-2022_2-01.json", loader)

    error = result.exception()
    assert isinstance(error, RetrievalError)
    assert str(error) == f"Failed to load CSAF document from {DIRECTORY}/bsi-2022_2-01.json"
    assert isinstance(error.__cause__, ValidationError)


def test_from_url_with_role_without_document_requirements(documents, loader):
    # listers do not put any requirement on documents
    result = RetrievedDocument.from_url(f"{DIRECTORY}/bsi-2022_2-01.json", loader, LISTER)
    assert result.is_success


def test_from_url_fetch_failure(loader):
    result = RetrievedDocument.from_url(f"{DIRECTORY}/missing.json", loader)
    assert isinstance(result.exception().__cause__, HTTPStatusError)


def test_from_json(helpers):
    text = helpers.read("test-fixtures/example.com/directory/bsi-2022-0001.json")

    document = RetrievedDocument.from_json(text, "file:///tmp/bsi-2022-0001.json").get_or_raise()

    assert document.tracking_id == "BSI-2022-0001"
    assert document.validation == NOT_APPLICABLE
    assert [v.cve for v in document.json.vulnerabilities] == ["CVE-2022-27193"]
    assert list(document.json.vulnerabilities[0].vectors()) == [
        "CVSS:3.1/AV:N/AC:L/PR:N/UI:R/S:C/C:L/I:L/A:N",
        "AV:N/AC:M/Au:N/C:C/I:C/A:N",
    ]


def test_from_json_failure():
    result = RetrievedDocument.from_json('{"document": {}}', "file:///tmp/broken.json")
    assert result.is_failure
    assert str(result.exception()) == "Failed to parse CSAF document from file:///tmp/broken.json"


def test_unique_id(helpers):
    document = RetrievedDocument.from_json(
        helpers.read("test-fixtures/example.com/directory/bsi-2022-0001.json"),
        f"{DIRECTORY}/bsi-2022-0001.json",
    ).get_or_raise()

    namespace_hash = hashlib.sha256(b"https://example.com").hexdigest()[:8]
    assert document.unique_id == f"CSAF-{namespace_hash}-BSI-2022-0001"
    assert len(document.unique_id) == len("CSAF-") + 8 + len("-BSI-2022-0001")
