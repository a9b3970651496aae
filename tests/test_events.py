"""Tests for the event manager."""

import pytest

from webrepo.events import Event, EventManager


@pytest.mark.unit
class TestEventManager:
    """Test ordered dispatch and short-circuiting."""

    @pytest.mark.asyncio
    async def test_listeners_run_in_order(self) -> None:
        calls = []
        manager = EventManager()
        manager.on("Model.beforeSave", lambda event: calls.append("first"))
        manager.on("Model.beforeSave", lambda event: calls.append("second"))

        event = await manager.dispatch("Model.beforeSave", subject=self, data={"x": 1})

        assert calls == ["first", "second"]
        assert event.subject is self
        assert event.data == {"x": 1}
        assert event.result is None
        assert not event.is_stopped()

    @pytest.mark.asyncio
    async def test_false_result_stops_dispatch(self) -> None:
        calls = []
        manager = EventManager()
        manager.on("Model.beforeSave", lambda event: False)
        manager.on("Model.beforeSave", lambda event: calls.append("late"))

        event = await manager.dispatch("Model.beforeSave")

        assert event.result is False
        assert event.is_stopped()
        assert calls == []

    @pytest.mark.asyncio
    async def test_stop_propagation(self) -> None:
        calls = []
        manager = EventManager()
        manager.on("Model.afterSave", lambda event: event.stop_propagation())
        manager.on("Model.afterSave", lambda event: calls.append("late"))

        event = await manager.dispatch(Event(name="Model.afterSave"))

        assert event.is_stopped()
        assert event.result is None
        assert calls == []

    @pytest.mark.asyncio
    async def test_async_listener(self) -> None:
        async def listener(event):
            return ["preset"]

        manager = EventManager().on("Model.beforeFind", listener)

        event = await manager.dispatch("Model.beforeFind")

        assert event.result == ["preset"]

    def test_off(self) -> None:
        def first(event):
            return None

        def second(event):
            return None

        manager = EventManager().on("a", first).on("a", second).on("b", first)

        manager.off("a", first)
        assert manager.listeners("a") == [second]

        manager.off("b")
        assert manager.listeners("b") == []

    @pytest.mark.asyncio
    async def test_register(self) -> None:
        class Listener:
            def __init__(self):
                self.seen = []

            def implemented_events(self):
                return {"Model.afterDelete": self.seen.append}

        listener = Listener()
        manager = EventManager().register(listener)

        await manager.dispatch("Model.afterDelete")

        assert [event.name for event in listener.seen] == ["Model.afterDelete"]
        assert str(listener.seen[0]) == "Event(Model.afterDelete)"
