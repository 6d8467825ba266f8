"""Stage-tagged console logging for reconciliation passes.

Every line of a pass carries a coloured ``[STAGE]`` tag so a pass can be
followed through the queue in a terminal:

    [PASS] Reconciling (owner=u1)
    [PUSH] create notes/n1 (entry=...)
    [CONFLICT] Remote wins for notes/n2 (remote=... | local=...)
    [COMPLETE] Reconciling 0.08s (owner=u1)
"""

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, NamedTuple

_RESET = "\033[0m"
_BOLD = "\033[1m"
_DIM = "\033[2m"
_GRAY = "\033[90m"
_RED = "\033[91m"


class Stage(NamedTuple):
    label: str
    color: str


class SyncStage:
    """Stages of a pass and their tag colours."""

    PASS = Stage("PASS", "\033[97m")
    PUSH = Stage("PUSH", "\033[92m")
    PULL = Stage("PULL", "\033[94m")
    CONFLICT = Stage("CONFLICT", "\033[93m")
    MERGE = Stage("MERGE", "\033[95m")
    ERROR = Stage("ERROR", _RED)
    COMPLETE = Stage("COMPLETE", "\033[92m")


def _paint(text: str, *styles: str) -> str:
    return f"{''.join(styles)}{text}{_RESET}"


def _context(kwargs: dict[str, Any], style: str = _GRAY) -> str:
    if not kwargs:
        return ""
    return " " + _paint("(" + " | ".join(f"{k}={v}" for k, v in kwargs.items()) + ")", style)


class SyncLogger:
    """Thin wrapper over a named stdlib logger that formats stage-tagged lines.

    Usage:
        log = SyncLogger("SyncPass")
        log.step(SyncStage.PUSH, "create notes/n1", entry="e1")
        log.step_error(SyncStage.PUSH, "update notes/n2", error=exc)
    """

    def __init__(self, component_name: str):
        self._logger = logging.getLogger(component_name)

    def _tagged(self, stage: Stage, message: str, color: str | None = None) -> str:
        color = color or stage.color
        return f"{_paint(f'[{stage.label}]', color, _BOLD)} {_paint(message, color)}"

    def step(self, stage: Stage, message: str, **kwargs: Any) -> None:
        self._logger.info(self._tagged(stage, message) + _context(kwargs))

    def step_error(self, stage: Stage, message: str, error: Exception | None = None) -> None:
        """Warning-level line, always red, with the exception type and text."""
        line = self._tagged(stage, message, color=_RED)
        if error is not None:
            line += " " + _paint(f"-> {type(error).__name__}: {error}", _DIM)
        self._logger.warning(line)

    def detail(self, message: str, **kwargs: Any) -> None:
        self._logger.debug("   " + _paint(f"- {message}", _GRAY) + _context(kwargs, _DIM))

    def stats(self, **counts: Any) -> None:
        self._logger.info("   " + _paint(" | ".join(f"{k}: {v}" for k, v in counts.items()), _GRAY))

    @contextmanager
    def timed_pass(self, message: str, **kwargs: Any) -> Iterator[None]:
        """Log the start and the end (with elapsed seconds) of a pass.

        An exception escaping the block is logged under ERROR and re-raised.
        """
        self.step(SyncStage.PASS, message, **kwargs)
        started = time.perf_counter()
        try:
            yield
        except Exception as exc:
            elapsed = time.perf_counter() - started
            self.step_error(SyncStage.ERROR, f"{message} failed after {elapsed:.2f}s", error=exc)
            raise
        elapsed = time.perf_counter() - started
        self.step(SyncStage.COMPLETE, f"{message} {elapsed:.2f}s", **kwargs)
