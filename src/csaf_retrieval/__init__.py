from __future__ import annotations

import logging
from typing import Any


def _add_logging_level(level_name: str, level_num: int, method_name: str | None = None) -> None:
    """
    Register a new logging level on the `logging` module and on the current logger class.

    `level_name` becomes an attribute of `logging` holding `level_num`, and `method_name`
    (defaults to `level_name.lower()`) becomes a convenience method on both `logging` and
    `logging.getLoggerClass()`. Nothing is changed if any of those names already exist, so
    importing the package repeatedly (or next to another library doing the same) is harmless.

    Example
    -------
    >>> _add_logging_level("TRACE", logging.DEBUG - 5)
    >>> logging.getLogger(__name__).trace("fetched https://example.com/index.txt")

    """
    if not method_name:
        method_name = level_name.lower()

    if hasattr(logging, level_name) or hasattr(logging, method_name) or hasattr(logging.getLoggerClass(), method_name):
        return

    def log_for_level(self: logging.Logger, message: str, *args: Any, **kwargs: Any) -> None:
        if self.isEnabledFor(level_num):
            self._log(level_num, message, args, **kwargs)

    def log_to_root(message: str, *args: Any, **kwargs: Any) -> None:
        logging.log(level_num, message, *args, **kwargs)

    logging.addLevelName(level_num, level_name)
    setattr(logging, level_name, level_num)
    setattr(logging.getLoggerClass(), method_name, log_for_level)
    setattr(logging, method_name, log_to_root)


# note: per-URL fetch logging is emitted at TRACE, so this must exist before any loader is created
_add_logging_level("TRACE", logging.DEBUG - 5)
