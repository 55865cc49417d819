from __future__ import annotations

import os
from dataclasses import dataclass, field

import mergedeep
import yaml
from mashumaro.mixins.dict import DataClassDictMixin

from csaf_retrieval.loader import CsafLoader
from csaf_retrieval.utils import http
from csaf_retrieval.utils.concurrency import DEFAULT_CHANNEL_CAPACITY

DEFAULT_PATH = ".csaf-retrieval.yaml"


@dataclass
class Retrieval:
    """
    How documents are fetched. `channel_capacity` bounds how many fetches of one pipeline stage
    may be in flight (or waiting to be consumed) at once.
    """

    channel_capacity: int = DEFAULT_CHANNEL_CAPACITY
    request_timeout: int = http.DEFAULT_TIMEOUT
    user_agent: str = http.DEFAULT_USER_AGENT
    retry: http.RetryPolicy = field(default_factory=http.RetryPolicy)

    def __post_init__(self) -> None:
        if self.channel_capacity < 1:
            raise ValueError("channel_capacity must be at least 1")

    def loader(self) -> CsafLoader:
        return CsafLoader(
            retry_policy=self.retry,
            timeout=self.request_timeout,
            user_agent=self.user_agent,
            pool_size=self.channel_capacity,
        )


@dataclass
class Log:
    slim: bool = os.environ.get("CSAF_RETRIEVAL_LOG_SLIM", default="false") == "true"
    level: str = os.environ.get("CSAF_RETRIEVAL_LOG_LEVEL", default="INFO")
    show_timestamp: bool = os.environ.get("CSAF_RETRIEVAL_LOG_SHOW_TIMESTAMP", default="false") == "true"
    show_level: bool = os.environ.get("CSAF_RETRIEVAL_LOG_SHOW_LEVEL", default="true") == "true"

    def __post_init__(self) -> None:
        self.level = self.level.upper()


@dataclass
class Application(DataClassDictMixin):
    log: Log = field(default_factory=Log)
    retrieval: Retrieval = field(default_factory=Retrieval)


def load(path: str = DEFAULT_PATH) -> Application:
    try:
        with open(path, encoding="utf-8") as f:
            app_object = yaml.safe_load(f.read()) or {}
            # start from a complete default config and merge the loaded values on top, otherwise
            # from_dict() would fill nested sections from their own dataclass defaults and drop
            # any environment driven values
            instance = Application().to_dict()

            mergedeep.merge(instance, app_object)
            cfg = Application.from_dict(instance)
            if cfg is None:
                raise FileNotFoundError("parsed empty config")
    except FileNotFoundError:
        cfg = Application()

    return cfg
