from __future__ import annotations

import dataclasses
import enum
import json
import logging
import sys
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import click
import yaml
from dateutil import parser as dateparser

from csaf_retrieval import __name__ as package_name
from csaf_retrieval import cvss
from csaf_retrieval.aggregator import RetrievedAggregator
from csaf_retrieval.cli import config
from csaf_retrieval.document import RetrievedDocument
from csaf_retrieval.errors import CsafRetrievalError, cause_chain
from csaf_retrieval.provider import RetrievedProvider

if TYPE_CHECKING:
    import datetime
    from collections.abc import Iterable

    from csaf_retrieval.result import Result


@click.option("--verbose", "-v", default=False, help="show logs", count=True)
@click.option("--config", "-c", "config_path", default=config.DEFAULT_PATH, help="override config path")
@click.group(help="Tool for discovering, fetching and validating CSAF security advisories.")
@click.version_option(package_name="csaf-retrieval", message="%(prog)s %(version)s")
@click.pass_context
def cli(ctx: click.core.Context, verbose: bool, config_path: str) -> None:
    import logging.config

    ctx.obj = config.load(path=config_path)

    log_level = ctx.obj.log.level
    if verbose == 1:
        log_level = "DEBUG"
    elif verbose >= 2:
        log_level = "TRACE"

    if ctx.obj.log.slim:
        timestamp_format = ""
        level_format = ""
    else:
        timestamp_format = "%(asctime)s "
        if not ctx.obj.log.show_timestamp:
            timestamp_format = ""

        level_format = "[%(levelname)-5s] "
        if not ctx.obj.log.show_level:
            level_format = ""

    log_format = f"%(log_color)s{timestamp_format}{level_format}%(message)s"

    logging.config.dictConfig(
        {
            "version": 1,
            "formatters": {
                "standard": {
                    "()": "colorlog.ColoredFormatter",
                    "format": log_format,
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                    "log_colors": {
                        "TRACE": "purple",
                        "DEBUG": "cyan",
                        "INFO": "reset",
                        "WARNING": "yellow",
                        "ERROR": "red",
                        "CRITICAL": "red,bg_white",
                    },
                },
            },
            "handlers": {
                "default": {
                    "level": log_level,
                    "formatter": "standard",
                    "class": "colorlog.StreamHandler",
                    "stream": "ext://sys.stderr",
                },
            },
            "loggers": {
                "": {  # root logger
                    "handlers": ["default"],
                    "level": log_level,
                },
            },
        },
    )
    logging.getLogger(package_name).debug(f"loaded config from {config_path}")


@cli.command(name="config", help="show the application config")
@click.pass_obj
def show_config(cfg: config.Application) -> None:
    logging.info("showing application config")

    class IndentDumper(yaml.Dumper):
        def increase_indent(self, flow: bool = False, indentless: bool = False) -> None:
            return super().increase_indent(flow, False)

    def enum_asdict_factory(data: list[tuple[str, Any]]) -> dict[Any, Any]:
        # render enums by value rather than as !!python/object/apply tags
        def convert_value(obj: Any) -> Any:
            if isinstance(obj, enum.Enum):
                return obj.value
            return obj

        return {k: convert_value(v) for k, v in data}

    cfg_dict = dataclasses.asdict(cfg, dict_factory=enum_asdict_factory)
    print(yaml.dump(cfg_dict, Dumper=IndentDumper, default_flow_style=False))


@dataclass
class Outcome:
    url: str
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"url": self.url, "valid": self.error is None, "error": self.error}

    def format(self) -> str:
        if self.error:
            return f"✗ {self.url}\n      {self.error}"
        return f"✓ {self.url}"


def describe(error: BaseException) -> str:
    return " <- ".join(str(e) for e in cause_chain(error))


def _outcome(result: Result[Any], url_of: Any) -> Outcome:
    if result.error is not None:
        return Outcome(url=getattr(result.error, "url", None) or "<unknown>", error=describe(result.error))
    return Outcome(url=url_of(result.value))


def _print_tree(root: str, outcomes: Iterable[Outcome], output_json: bool) -> None:
    items = list(outcomes)
    if output_json:
        print(json.dumps({"source": root, "results": [o.to_dict() for o in items]}, indent=2))  # noqa: TID251
        return

    print(root)
    for idx, outcome in enumerate(items):
        branch = "└──" if idx == len(items) - 1 else "├──"
        print(f"{branch} {outcome.format()}")
    valid = sum(1 for o in items if o.error is None)
    print(f"\n{len(items)} results: {valid} valid, {len(items) - valid} failed")


def _parse_since(ctx: click.Context, param: click.Parameter, value: str | None) -> datetime.datetime | None:
    if value is None:
        return None
    try:
        return dateparser.isoparse(value)
    except ValueError as e:
        raise click.BadParameter(f"not an ISO 8601 timestamp: {value!r}") from e


@cli.command(name="provider", help="resolve the CSAF provider of a domain and retrieve all of its documents")
@click.argument("domain")
@click.option("--since", default=None, callback=_parse_since, help="only retrieve documents changed at or after this ISO 8601 timestamp")
@click.option("--count-only", default=False, is_flag=True, help="only count the documents the provider lists")
@click.option("--json", "output_json", default=False, is_flag=True, help="output as JSON")
@click.pass_obj
def provider_documents(
    cfg: config.Application,
    domain: str,
    since: datetime.datetime | None,
    count_only: bool,
    output_json: bool,
) -> None:
    loader = cfg.retrieval.loader()

    try:
        provider = RetrievedProvider.from_domain(domain, loader)
    except CsafRetrievalError as e:
        logging.error(describe(e))
        sys.exit(1)

    logging.info(f"resolved {domain} via {provider.data_source.value} as {provider.role.name}")
    capacity = cfg.retrieval.channel_capacity

    if count_only:
        print(provider.count_expected_documents(loader, capacity, since))
        return

    outcomes = (_outcome(r, lambda d: d.url) for r in provider.fetch_documents(loader, capacity, since))
    _print_tree(provider.json.canonical_url, outcomes, output_json)


@cli.command(name="aggregator", help="load a CSAF aggregator (or lister) and resolve every listed provider and publisher")
@click.argument("url")
@click.option("--json", "output_json", default=False, is_flag=True, help="output as JSON")
@click.pass_obj
def aggregator_entries(cfg: config.Application, url: str, output_json: bool) -> None:
    loader = cfg.retrieval.loader()

    try:
        aggregator = RetrievedAggregator.load(url, loader)
    except CsafRetrievalError as e:
        logging.error(describe(e))
        sys.exit(1)

    logging.info(f"loaded {aggregator.json.aggregator.name} as {aggregator.role.name}")
    outcomes = [_outcome(r, lambda p: p.json.canonical_url) for r in aggregator.fetch_all(loader, cfg.retrieval.channel_capacity)]
    _print_tree(url, outcomes, output_json)


@cli.command(name="document", help="fetch and validate a single CSAF document")
@click.argument("url")
@click.pass_obj
def single_document(cfg: config.Application, url: str) -> None:
    result = RetrievedDocument.from_url(url, cfg.retrieval.loader())
    if result.error is not None:
        logging.error(describe(result.error))
        sys.exit(1)

    document = result.get_or_raise()
    print(f"{document.unique_id}: {document.json.document.title}")
    for vuln in document.json.vulnerabilities:
        for vector in vuln.vectors():
            try:
                scores = cvss.calculate(vector)
            except cvss.CvssError as e:
                logging.warning(f"{vuln.cve or 'vulnerability'}: {e}")
                continue
            print(f"  {vuln.cve or '-'}  {scores.base_score:>4}  {scores.base_severity.value:<8}  {vector}")


@cli.command(name="cvss", help="calculate the scores of a CVSS v2 or v3 vector")
@click.argument("vector")
def cvss_scores(vector: str) -> None:
    try:
        scores = cvss.calculate(vector)
    except cvss.CvssError as e:
        logging.error(str(e))
        sys.exit(1)

    print(f"CVSS v{scores.version}")
    print(f"base:          {scores.base_score} ({scores.base_severity.value})")
    print(f"temporal:      {scores.temporal_score} ({scores.temporal_severity.value})")
    print(f"environmental: {scores.environmental_score} ({scores.environmental_severity.value})")
