from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

from ..models.injection import BatchSummary, ProgressEvent

"""Progress display with tqdm (TTY only).

ProgressTracker is a progress sink for InjectionOrchestrator: it receives a
ProgressEvent after every item and moves a single tqdm bar. In non-TTY
environments (CI, redirected output) the bar is disabled to avoid ANSI
control sequence spam.
"""

__all__ = [
    "ProgressTracker",
    "format_eta",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    """True if stdout is a TTY and progress should be displayed."""
    return sys.stdout.isatty()


def format_eta(seconds: float) -> str:
    """``75.4`` -> ``"1m15s"``; under a minute -> ``"42s"``."""
    total = int(round(seconds))
    minutes, secs = divmod(total, 60)
    if minutes:
        return f"{minutes}m{secs:02d}s"
    return f"{secs}s"


class ProgressTracker:
    """tqdm-backed progress sink for injection batches."""

    def __init__(self, total_items: int, *, description: str = "Injecting") -> None:
        self.total_items = total_items
        self.description = description
        self._base_description = description
        self.completed = 0
        self.last_event: ProgressEvent | None = None
        self.summary: BatchSummary | None = None

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_items,
                desc=description,
                unit="file",
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def __call__(self, event: ProgressEvent) -> None:
        self.last_event = event
        if event.summary is not None:
            s = event.summary
            self.summary = s
            self.set_postfix(ok=s.success, failed=s.failed, skipped=s.skipped)
            return
        if event.total != self.total_items or event.completed <= self.completed:
            # 新しいパス (再試行) -> バーを張り直す
            self.reset(event.total, description=f"{self._base_description} (retry)")
        advance = event.completed - self.completed
        self.completed = event.completed
        if self.enabled and self.pbar is not None:
            self.pbar.set_description(f"{self.description} ({event.current_item})")
            self.pbar.set_postfix(eta=format_eta(event.eta_seconds))
            if advance > 0:
                self.pbar.update(advance)

    def reset(self, total_items: int, *, description: str | None = None) -> None:
        self.total_items = total_items
        self.completed = 0
        if description is not None:
            self.description = description
        if self.enabled and self.pbar is not None:
            self.pbar.reset(total=total_items)
            self.pbar.set_description(self.description)

    def set_postfix(self, **kwargs: Any) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.set_postfix(**kwargs)

    def close(self) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
