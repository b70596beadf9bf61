import json
import sys
from datetime import datetime
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from storysync.services.change_feed import ChangeFeed, format_sse, sse_comment


def test_publish_reaches_only_that_story():
    feed = ChangeFeed()
    first = feed.subscribe(1)
    second = feed.subscribe(2)

    delivered = feed.publish(1, "chapter_saved", {"id": 10})

    assert delivered == 1
    assert first.get(timeout=0.1).payload == {"id": 10}
    assert second.get(timeout=0.01) is None


def test_every_subscriber_gets_a_copy():
    feed = ChangeFeed()
    subscriptions = [feed.subscribe(5) for _ in range(3)]

    feed.publish(5, "chapter_added", {"id": 1})

    assert all(sub.get(timeout=0.1).event == "chapter_added" for sub in subscriptions)


def test_full_queue_drops_oldest_event():
    feed = ChangeFeed()
    subscription = feed.subscribe(1, maxsize=2)

    for revision in range(3):
        feed.publish(1, "chapter_saved", {"revision": revision})

    assert subscription.pending() == 2
    assert subscription.get(timeout=0.1).payload["revision"] == 1
    assert subscription.get(timeout=0.1).payload["revision"] == 2


def test_closed_subscription_stops_receiving():
    feed = ChangeFeed()
    with feed.subscribe(3) as subscription:
        assert feed.listener_count(3) == 1

    assert subscription.closed
    assert feed.listener_count(3) == 0
    assert feed.publish(3, "chapter_saved", {}) == 0


def test_format_sse_renders_single_data_line():
    frame = format_sse("chapter_saved", {"content": "line one\nline two", "at": datetime(2024, 5, 1, 9, 30)})

    event_line, data_line, blank, end = frame.split("\n")
    assert event_line == "event: chapter_saved"
    assert json.loads(data_line[len("data: "):]) == {"content": "line one\nline two", "at": "2024-05-01T09:30:00"}
    assert blank == "" and end == ""


def test_sse_comment():
    assert sse_comment("keep-alive") == ": keep-alive\n\n"
