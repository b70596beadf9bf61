import sys
import threading
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from storysync.sync import ChapterEditorSession, Debouncer


class RecordingSaver:
    def __init__(self, succeed=True):
        self.calls = []
        self.succeed = succeed

    def __call__(self, content):
        self.calls.append(content)
        if isinstance(self.succeed, Exception):
            raise self.succeed
        return self.succeed


def test_debouncer_runs_only_last_call():
    fired = threading.Event()
    calls = []

    def record(value):
        calls.append(value)
        fired.set()

    debounced = Debouncer(record, wait=0.05)
    debounced("a")
    debounced("b")
    debounced("c")

    assert fired.wait(2)
    assert calls == ["c"]
    assert not debounced.pending


def test_debouncer_flush_and_cancel():
    calls = []
    debounced = Debouncer(calls.append, wait=60)

    debounced("first")
    assert debounced.pending
    assert debounced.flush() is True
    assert calls == ["first"]
    assert debounced.flush() is False

    debounced("second")
    debounced.cancel()
    assert not debounced.pending
    assert calls == ["first"]


def test_debouncer_stale_timer_does_not_run_newer_call():
    calls = []
    debounced = Debouncer(calls.append, wait=60)

    debounced("old")
    stale_timer = debounced._timer
    debounced("new")
    debounced._fire(stale_timer)

    assert calls == []
    assert debounced.pending
    assert debounced.flush() is True
    assert calls == ["new"]


def test_edit_marks_unsaved_and_schedules_save():
    saver = RecordingSaver()
    session = ChapterEditorSession(saver, wait=60)
    session.load("<p>Start</p>")

    assert session.edit("<p>Start!</p>") is True
    assert session.has_unsaved_changes
    assert saver.calls == []

    session.switch_chapter()

    assert saver.calls == ["<p>Start!</p>"]
    assert session.last_saved == "<p>Start!</p>"
    assert not session.has_unsaved_changes


def test_edit_ignored_when_read_only_or_unchanged():
    saver = RecordingSaver()
    readonly = ChapterEditorSession(saver, can_edit=False, wait=60)
    readonly.load("text")

    assert readonly.edit("changed") is False
    assert readonly.save_now() is False

    session = ChapterEditorSession(saver, wait=60)
    session.load("text")
    assert session.edit("text") is False
    assert not session.has_unsaved_changes
    assert saver.calls == []


def test_failed_save_keeps_unsaved_flag():
    saver = RecordingSaver(succeed=RuntimeError("network down"))
    session = ChapterEditorSession(saver, wait=60)
    session.load("a")
    session.edit("ab")

    assert session.save_now() is False
    assert session.has_unsaved_changes
    assert session.last_saved == "a"
    assert not session.is_saving


def test_remote_echo_of_own_save_is_ignored():
    session = ChapterEditorSession(RecordingSaver(), wait=60)
    session.load("a")
    session.edit("ab")
    session.save_now()

    assert session.apply_remote("ab") is False
    assert session.content == "ab"


def test_remote_change_replaces_clean_editor():
    session = ChapterEditorSession(RecordingSaver(), wait=60)
    session.load("a")

    assert session.apply_remote("a from someone else") is True
    assert session.content == "a from someone else"
    assert not session.has_unsaved_changes


def test_remote_change_wins_over_unsaved_local_edit():
    saver = RecordingSaver()
    session = ChapterEditorSession(saver, wait=60)
    session.load("base")
    session.edit("base + mine")

    assert session.apply_remote("base + theirs") is True
    assert session.content == "base + theirs"
    assert not session.has_unsaved_changes

    session.switch_chapter()
    assert saver.calls == []


def test_remote_matching_unsaved_local_content_is_ignored():
    session = ChapterEditorSession(RecordingSaver(), wait=60)
    session.load("base")
    session.edit("same words")

    assert session.apply_remote("same words") is False
    assert session.has_unsaved_changes


def test_switch_chapter_without_changes_does_not_save():
    saver = RecordingSaver()
    session = ChapterEditorSession(saver, wait=60)
    session.load("steady")

    assert session.switch_chapter() is False
    assert saver.calls == []
