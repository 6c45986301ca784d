"""Tests for the event bus."""

from __future__ import annotations

import gc
import logging

from plotweaver.workspace.events import EventBus, NoticePosted, SelectionChanged


class _Listener:
    def __init__(self) -> None:
        self.seen: list[str] = []

    def on_notice(self, event: NoticePosted) -> None:
        self.seen.append(event.message)


class TestEventBus:
    def test_publish_reaches_handlers_in_order(self) -> None:
        bus = EventBus()
        calls: list[str] = []
        bus.subscribe(NoticePosted, lambda e: calls.append("first:" + e.message))
        bus.subscribe(NoticePosted, lambda e: calls.append("second:" + e.message))

        bus.publish(NoticePosted(message="hi"))

        assert calls == ["first:hi", "second:hi"]

    def test_handlers_are_keyed_by_exact_type(self) -> None:
        bus = EventBus()
        calls: list[object] = []
        bus.subscribe(SelectionChanged, calls.append)

        bus.publish(NoticePosted(message="ignored"))

        assert calls == []

    def test_unsubscribe(self) -> None:
        bus = EventBus()
        calls: list[object] = []
        handler = calls.append
        bus.subscribe(NoticePosted, handler)
        bus.unsubscribe(NoticePosted, handler)
        bus.unsubscribe(SelectionChanged, handler)

        bus.publish(NoticePosted(message="x"))

        assert calls == []
        assert bus.handler_count() == 0

    def test_failing_handler_does_not_stop_others(self, caplog) -> None:
        bus = EventBus()
        calls: list[object] = []

        def broken(event: NoticePosted) -> None:
            raise RuntimeError("boom")

        bus.subscribe(NoticePosted, broken)
        bus.subscribe(NoticePosted, calls.append)

        with caplog.at_level(logging.ERROR, logger="plotweaver.workspace.events"):
            bus.publish(NoticePosted(message="x"))

        assert len(calls) == 1
        assert "broken" in caplog.text

    def test_bound_methods_are_weakly_held(self) -> None:
        bus = EventBus()
        listener = _Listener()
        bus.subscribe(NoticePosted, listener.on_notice)
        bus.publish(NoticePosted(message="alive"))
        assert listener.seen == ["alive"]

        del listener
        gc.collect()
        bus.publish(NoticePosted(message="gone"))

        assert bus.handler_count(NoticePosted) == 0

    def test_clear(self) -> None:
        bus = EventBus()
        bus.subscribe(NoticePosted, lambda e: None)
        bus.clear()
        assert bus.handler_count(NoticePosted) == 0
