"""Debounced autosave and remote reconciliation for a chapter editor.

``static/js/editor.js`` follows the same rules in the browser. This module
keeps them usable from Python for headless editors and tests.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional

LOGGER = logging.getLogger(__name__)


class Debouncer:
    """Delay ``func`` until ``wait`` seconds pass without another call."""

    def __init__(self, func: Callable[..., Any], wait: float) -> None:
        self.func = func
        self.wait = wait
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._pending_args: Optional[tuple] = None

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def __call__(self, *args: Any) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._pending_args = args
            timer = threading.Timer(self.wait, lambda: self._fire(timer))
            timer.daemon = True
            self._timer = timer
            timer.start()

    def _take_pending(self, expected: Optional[threading.Timer] = None) -> Optional[tuple]:
        with self._lock:
            if self._timer is None:
                return None
            # A timer that fired after being replaced must not run the newer call.
            if expected is not None and self._timer is not expected:
                return None
            self._timer.cancel()
            self._timer = None
            args, self._pending_args = self._pending_args, None
            return args

    def _fire(self, timer: threading.Timer) -> None:
        args = self._take_pending(timer)
        if args is not None:
            self.func(*args)

    def flush(self) -> bool:
        """Run the pending call now. Returns ``False`` when nothing was pending."""

        args = self._take_pending()
        if args is None:
            return False
        self.func(*args)
        return True

    def cancel(self) -> None:
        self._take_pending()


class ChapterEditorSession:
    """Local state of one editor attached to the currently selected chapter.

    ``save`` receives the content to persist and returns a truthy value on
    success; returning a falsy value or raising counts as a failed save.
    """

    def __init__(self, save: Callable[[str], Any], can_edit: bool = True, wait: float = 2.0) -> None:
        self._save = save
        self.can_edit = can_edit
        self.content = ""
        self.last_saved = ""
        self.has_unsaved_changes = False
        self.is_saving = False
        self._lock = threading.RLock()
        self._debouncer = Debouncer(self.save_now, wait)

    def load(self, content: Optional[str]) -> None:
        with self._lock:
            self._debouncer.cancel()
            self.content = content or ""
            self.last_saved = self.content
            self.has_unsaved_changes = False

    def edit(self, content: str) -> bool:
        """Record a local edit and schedule an autosave for it."""

        with self._lock:
            if not self.can_edit or content == self.content:
                return False
            self.content = content
            self.has_unsaved_changes = True
        self._debouncer(content)
        return True

    def save_now(self, content: Optional[str] = None) -> bool:
        with self._lock:
            if not self.can_edit or self.is_saving:
                return False
            to_save = self.content if content is None else content
            self.is_saving = True

        try:
            saved = self._save(to_save)
        except Exception as exc:
            LOGGER.warning("Autosave failed: %s", exc)
            saved = False
        finally:
            with self._lock:
                self.is_saving = False

        with self._lock:
            if not saved:
                self.has_unsaved_changes = True
                return False
            self.last_saved = to_save
            if self.content == to_save:
                self.has_unsaved_changes = False
            return True

    def apply_remote(self, remote: Optional[str]) -> bool:
        """Adopt a remote snapshot unless it is an echo of our own work.

        Returns ``True`` when the local content was replaced.
        """

        remote = remote or ""
        with self._lock:
            if remote == self.last_saved:
                return False
            if self.has_unsaved_changes and remote == self.content:
                return False
            self._debouncer.cancel()
            self.content = remote
            self.last_saved = remote
            self.has_unsaved_changes = False
            return True

    def switch_chapter(self) -> bool:
        """Persist outstanding edits before another chapter is selected."""

        self._debouncer.cancel()
        with self._lock:
            needs_save = self.has_unsaved_changes and self.content != self.last_saved
        if needs_save:
            return self.save_now()
        return False

    def close(self) -> None:
        self.switch_chapter()
