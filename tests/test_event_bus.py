import asyncio

from triggerbrew.orchestrator.event_bus import TASK_CREATED, EventBus


async def test_subscribe_and_emit():
    bus = EventBus()
    received = []

    async def handler(event):
        received.append(event)

    bus.subscribe(TASK_CREATED, handler)
    await bus.emit(TASK_CREATED, {"task_id": "task-1"})
    await bus.drain()
    assert received == [{"type": TASK_CREATED, "task_id": "task-1"}]


async def test_wildcard_receives_everything():
    bus = EventBus()
    received = []

    async def handler(event):
        received.append(event["type"])

    bus.subscribe("*", handler)
    await bus.emit("a", {})
    await bus.emit("b", {})
    await bus.drain()
    assert sorted(received) == ["a", "b"]


async def test_unsubscribe():
    bus = EventBus()
    received = []

    async def handler(event):
        received.append(event)

    bus.subscribe("test_event", handler)
    bus.unsubscribe("test_event", handler)
    await bus.emit("test_event", {"data": "hello"})
    await asyncio.sleep(0.01)
    assert received == []


async def test_failing_handler_does_not_block_others():
    bus = EventBus()
    received = []

    async def bad(event):
        raise RuntimeError("nope")

    async def good(event):
        received.append(event)

    bus.subscribe("e", bad)
    bus.subscribe("e", good)
    await bus.emit("e", {})
    await bus.drain()
    assert len(received) == 1


async def test_history_is_filtered_and_bounded():
    bus = EventBus()
    bus.MAX_HISTORY = 3
    for i in range(5):
        await bus.emit("tick" if i % 2 else "tock", {"i": i})
    history = bus.get_history()
    assert [e["i"] for e in history] == [2, 3, 4]
    assert [e["i"] for e in bus.get_history("tick")] == [3]
