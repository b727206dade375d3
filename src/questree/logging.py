"""Opt-in loguru output for tree builds and questionnaire sessions.

questree logs through loguru but stays silent until ``enable_logging()`` is
called. Records are emitted at four levels:

- ``DEBUG``: excluded catalog columns, every split decision, each answer.
- ``INFO``: catalog encoding summaries.
- ``TREE_BUILD`` (25): finished builds and completed questionnaires.
- ``WARNING``: rejected answers and rejected tree documents.

Note:
    Importing this module removes loguru's default stderr handler (ID 0) so
    that ``enable_logging()`` output is not printed twice. The removal is
    skipped silently when handler 0 is already gone, e.g. because the host
    application reconfigured loguru first.
"""

from __future__ import annotations

import contextlib
import sys
import threading
import warnings
from typing import TYPE_CHECKING, ClassVar, Final, Literal

from loguru import logger

if TYPE_CHECKING:
    from types import TracebackType

    from loguru import Record

PACKAGE_NAME: Final[str] = __name__.split(".")[0]

TREE_BUILD_LEVEL: Final[str] = "TREE_BUILD"
TREE_BUILD_LEVEL_NUMBER: Final[int] = 25  # Between INFO (20) and WARNING (30)

with contextlib.suppress(ValueError):
    logger.remove(0)


def _register_tree_build_level() -> None:
    """Add the TREE_BUILD level to loguru unless it is already present.

    loguru cannot renumber an existing level, so a TREE_BUILD level that some
    other code registered with a different number is kept and reported with a
    ``UserWarning``.
    """
    try:
        registered_number = logger.level(TREE_BUILD_LEVEL).no
    except ValueError:
        logger.level(TREE_BUILD_LEVEL, no=TREE_BUILD_LEVEL_NUMBER, color="<green><bold>", icon="🌳")
        return
    if registered_number != TREE_BUILD_LEVEL_NUMBER:
        warnings.warn(
            f"{TREE_BUILD_LEVEL} is already registered with numeric value {registered_number};"
            f" questree emits it expecting {TREE_BUILD_LEVEL_NUMBER}",
            UserWarning,
            stacklevel=2,
        )


_register_tree_build_level()

type LogLevel = Literal["TRACE", "DEBUG", "INFO", "TREE_BUILD", "WARNING", "ERROR", "CRITICAL"]

type LogFormat = Literal["short", "full"]

_RECORD_PREFIX: Final[str] = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <10}</level> | "  # noqa: RUF027 - loguru format string
)
_RECORD_FORMATS: Final[dict[str, str]] = {
    "short": _RECORD_PREFIX + "<cyan>{function}</cyan> - <level>{message}</level> {extra}",
    "full": _RECORD_PREFIX
    + "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level> {extra}",
}


class LoggingHandle:
    """Owns one stderr handler added by `enable_logging`.

    Handles are independent: disabling one removes only its own handler.
    The package is muted again once the last live handle is disabled.

    Attributes:
        handler_id (int | None): The loguru handler id, or `None` once disabled.

    Examples:
        >>> with enable_logging(level="DEBUG"):  # doctest: +SKIP
        ...     tree = build_catalog_tree(headers, rows)

        >>> handle = enable_logging()  # doctest: +SKIP
        >>> session.answer("left")  # doctest: +SKIP
        >>> handle.disable()  # doctest: +SKIP
    """

    _active_ids: ClassVar[set[int]] = set()
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, handler_id: int) -> None:
        """Register `handler_id` as live.

        Args:
            handler_id (int): Id returned by ``logger.add()``.
        """
        self.handler_id: int | None = handler_id
        with self._lock:
            self._active_ids.add(handler_id)

    @classmethod
    def get_active_handle_count(cls) -> int:
        """Return how many handles are still live.

        Returns:
            int: Number of handles not yet disabled.
        """
        with cls._lock:
            return len(cls._active_ids)

    def disable(self) -> None:
        """Remove this handle's handler; mute questree if no live handle remains.

        Safe to call more than once. Muting also silences sinks that were
        attached separately through ``logger.enable("questree")``.
        """
        with self._lock:
            handler_id, self.handler_id = self.handler_id, None
            if handler_id is None:
                return
            self._active_ids.discard(handler_id)
            with contextlib.suppress(ValueError):
                logger.remove(handler_id)
            if not self._active_ids:
                logger.disable(PACKAGE_NAME)

    def __enter__(self) -> LoggingHandle:
        """Return the handle itself.

        Returns:
            LoggingHandle: This handle.
        """
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Disable the handle, whether or not the block raised.

        Args:
            exc_type (type[BaseException] | None): Exception type raised in the block, if any.
            exc_val (BaseException | None): Exception raised in the block, if any.
            exc_tb (TracebackType | None): Traceback of that exception, if any.
        """
        self.disable()


def enable_logging(
    *,
    level: LogLevel = TREE_BUILD_LEVEL,
    log_format: LogFormat = "short",
) -> LoggingHandle:
    """Print questree log records to stderr.

    Args:
        level (LogLevel): Lowest level printed. The default ``"TREE_BUILD"``
            shows one line per finished build or questionnaire; ``"DEBUG"``
            also shows exclusions and split decisions.
        log_format (LogFormat): ``"short"`` prints the emitting function;
            ``"full"`` prints ``module:function:line``.

    Returns:
        LoggingHandle: Handle that removes the handler again, directly or as
            a context manager.

    Examples:
        >>> with enable_logging(level="DEBUG", log_format="full"):  # doctest: +SKIP
        ...     tree = build_catalog_tree(headers, rows)
    """
    logger.enable(PACKAGE_NAME)
    handler_id = logger.add(
        sys.stderr,
        level=level,
        format=_RECORD_FORMATS[log_format],
        filter=_from_questree,
    )
    return LoggingHandle(handler_id)


def _from_questree(record: Record) -> bool:
    """Return `True` for records emitted by a questree module.

    Args:
        record (Record): The loguru record.

    Returns:
        bool: Whether the record's top-level module is questree.
    """
    name = record["name"]
    return name is not None and name.partition(".")[0] == PACKAGE_NAME
