import pytest

from flow_engine import (
    CancelReason,
    ContextKey,
    ContextTypeError,
    FlowAlreadyActiveError,
    FlowBuilder,
    FlowConflictPolicy,
    FlowRegistry,
    NoActiveFlowError,
    SessionStatus,
    SessionStore,
    StepOutcome,
    UnknownFlowError,
)

USER_ID = 42
NOTE = ContextKey("note", str)
COUNT = ContextKey("count", int)


async def _stay(ctx, step_input):
    return StepOutcome.STAY


class HookLog:
    """Collects flow lifecycle calls as (event, flow, detail) tuples."""

    def __init__(self):
        self.calls = []

    def enter(self, flow_name, step_name):
        async def hook(ctx):
            self.calls.append(("enter", flow_name, step_name))
        return hook

    def complete(self, flow_name):
        async def hook(ctx):
            self.calls.append(("complete", flow_name, ctx.get(NOTE)))
        return hook

    def cancel(self, flow_name):
        async def hook(ctx):
            self.calls.append(("cancel", flow_name, ctx.cancel_reason))
        return hook

    def of(self, kind):
        return [call for call in self.calls if call[0] == kind]


def _build(log, name, *step_names):
    builder = FlowBuilder(name)
    for step_name in step_names:
        builder.step(step_name, on_enter=log.enter(name, step_name), on_input=_stay)
    return builder.on_complete(log.complete(name)).on_cancel(log.cancel(name)).build()


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def log():
    return HookLog()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry(log):
    registry = FlowRegistry()
    registry.register(_build(log, "change_name", "enter_name", "confirm"))
    registry.register(_build(log, "transfer_balance", "amount", "receiver", "confirm"))
    registry.freeze()
    return registry


@pytest.fixture
def store(registry, replies, clock):
    return SessionStore(registry, replies, clock=clock)


def test_unseen_user_gets_idle_session(store):
    session = store.get(USER_ID)

    assert session.status == SessionStatus.IDLE
    assert session.flow_name is None
    assert not session.context
    assert not store.is_user_in_flow(USER_ID)


@pytest.mark.asyncio
async def test_start_flow_enters_step_zero_with_clean_context(store, log):
    store.set_context(USER_ID, NOTE, "orphaned")

    await store.start_flow(USER_ID, "change_name")

    session = store.get(USER_ID)
    assert session.status == SessionStatus.ACTIVE
    assert session.flow_name == "change_name"
    assert session.step_index == 0
    assert NOTE not in session.context
    assert log.calls == [("enter", "change_name", "enter_name")]


@pytest.mark.asyncio
async def test_start_flow_seeds_initial_context(store):
    await store.start_flow(USER_ID, "change_name", initial={COUNT: 7})

    assert store.get_context(USER_ID, COUNT) == 7


@pytest.mark.asyncio
async def test_start_unknown_flow(store):
    with pytest.raises(UnknownFlowError):
        await store.start_flow(USER_ID, "does_not_exist")
    assert not store.is_user_in_flow(USER_ID)


@pytest.mark.asyncio
async def test_starting_a_flow_supersedes_the_active_one(store, log):
    await store.start_flow(USER_ID, "change_name")
    await store.advance(USER_ID)

    await store.start_flow(USER_ID, "transfer_balance")

    session = store.get(USER_ID)
    assert session.flow_name == "transfer_balance"
    assert session.step_index == 0
    assert log.of("cancel") == [("cancel", "change_name", CancelReason.SUPERSEDED)]
    assert log.calls[-1] == ("enter", "transfer_balance", "amount")


@pytest.mark.asyncio
async def test_only_latest_of_many_starts_is_active(store, log):
    for name in ["change_name", "transfer_balance", "change_name", "transfer_balance"]:
        await store.start_flow(USER_ID, name)

    assert store.active_flow(USER_ID).name == "transfer_balance"
    assert [call[1] for call in log.of("cancel")] == ["change_name", "transfer_balance", "change_name"]


@pytest.mark.asyncio
async def test_reject_policy_keeps_the_active_flow(registry, replies, log):
    store = SessionStore(registry, replies, conflict_policy=FlowConflictPolicy.REJECT)
    await store.start_flow(USER_ID, "change_name")

    with pytest.raises(FlowAlreadyActiveError) as exc:
        await store.start_flow(USER_ID, "transfer_balance")

    assert exc.value.active_flow == "change_name"
    assert store.active_flow(USER_ID).name == "change_name"
    assert log.of("cancel") == []


@pytest.mark.asyncio
async def test_advance_walks_steps_then_completes(store, log):
    await store.start_flow(USER_ID, "change_name")
    store.set_context(USER_ID, NOTE, "Alice")

    await store.advance(USER_ID)
    assert store.get(USER_ID).step_index == 1

    await store.advance(USER_ID)

    session = store.get(USER_ID)
    assert session.status == SessionStatus.IDLE
    assert not session.context
    # the completion hook still saw the context
    assert log.of("complete") == [("complete", "change_name", "Alice")]
    assert log.of("cancel") == []


@pytest.mark.asyncio
async def test_advance_without_flow(store):
    with pytest.raises(NoActiveFlowError):
        await store.advance(USER_ID)


@pytest.mark.asyncio
async def test_cancel_clears_state_and_fires_hook_once(store, log):
    await store.start_flow(USER_ID, "transfer_balance")
    store.set_context(USER_ID, COUNT, 3)

    assert await store.cancel(USER_ID) is True
    assert await store.cancel(USER_ID) is False

    session = store.get(USER_ID)
    assert session.status == SessionStatus.IDLE
    assert not session.context
    assert log.of("cancel") == [("cancel", "transfer_balance", CancelReason.USER)]


@pytest.mark.asyncio
async def test_cancel_while_idle_is_a_noop(store, log):
    assert await store.cancel(USER_ID) is False
    assert log.calls == []


@pytest.mark.asyncio
async def test_cancel_hook_may_start_another_flow(replies, log):
    async def restart(ctx):
        await ctx.start_flow("other")

    registry = FlowRegistry()
    registry.register(FlowBuilder("first").step("a", on_input=_stay).on_cancel(restart).build())
    registry.register(_build(log, "other", "x"))
    store = SessionStore(registry, replies)

    await store.start_flow(USER_ID, "first")
    await store.cancel(USER_ID)

    assert store.active_flow(USER_ID).name == "other"
    assert log.calls == [("enter", "other", "x")]


@pytest.mark.asyncio
async def test_cancel_hook_calling_cancel_does_not_recurse(replies):
    calls = []

    async def on_cancel(ctx):
        calls.append(ctx.cancel_reason)
        assert await ctx.cancel_flow() is False

    registry = FlowRegistry()
    registry.register(FlowBuilder("first").step("a", on_input=_stay).on_cancel(on_cancel).build())
    store = SessionStore(registry, replies)

    await store.start_flow(USER_ID, "first")
    await store.cancel(USER_ID)

    assert calls == [CancelReason.USER]
    assert not store.is_user_in_flow(USER_ID)


@pytest.mark.asyncio
async def test_failing_on_enter_cancels_the_flow(replies):
    cancelled = []

    async def broken(ctx):
        raise RuntimeError("record store down")

    async def on_cancel(ctx):
        cancelled.append(ctx.cancel_reason)

    registry = FlowRegistry()
    registry.register(FlowBuilder("broken").step("a", on_enter=broken, on_input=_stay).on_cancel(on_cancel).build())
    store = SessionStore(registry, replies)

    with pytest.raises(RuntimeError):
        await store.start_flow(USER_ID, "broken")

    assert not store.is_user_in_flow(USER_ID)
    assert cancelled == [CancelReason.ERROR]


@pytest.mark.asyncio
async def test_typed_context_rejects_wrong_types(store):
    await store.start_flow(USER_ID, "change_name")

    with pytest.raises(ContextTypeError):
        store.set_context(USER_ID, COUNT, "three")
    with pytest.raises(ContextTypeError):
        store.set_context(USER_ID, COUNT, True)
    with pytest.raises(ContextTypeError):
        store.set_context(USER_ID, ContextKey("count", str), "3")

    store.set_context(USER_ID, COUNT, 3)
    assert store.get_context(USER_ID, COUNT) == 3
    assert store.get_context(USER_ID, NOTE, "none") == "none"


@pytest.mark.asyncio
async def test_initial_context_is_type_checked_before_starting(store, log):
    with pytest.raises(ContextTypeError):
        await store.start_flow(USER_ID, "change_name", initial={COUNT: "x"})

    assert not store.is_user_in_flow(USER_ID)
    assert log.calls == []


@pytest.mark.asyncio
async def test_get_returns_a_snapshot(store):
    await store.start_flow(USER_ID, "change_name")
    snapshot = store.get(USER_ID)
    snapshot.context.set(NOTE, "changed")
    snapshot.step_index = 5

    assert store.get_context(USER_ID, NOTE) is None
    assert store.get(USER_ID).step_index == 0


@pytest.mark.asyncio
async def test_expire_idle_cancels_only_stale_sessions(store, log, clock):
    await store.start_flow(1, "change_name")
    clock.now += 600
    await store.start_flow(2, "transfer_balance")
    clock.now += 400

    expired = await store.expire_idle(900)

    assert expired == [1]
    assert not store.is_user_in_flow(1)
    assert store.is_user_in_flow(2)
    assert log.of("cancel") == [("cancel", "change_name", CancelReason.EXPIRED)]


@pytest.mark.asyncio
async def test_touch_keeps_a_session_alive(store, clock):
    await store.start_flow(USER_ID, "change_name")
    clock.now += 800
    store.touch(USER_ID)
    clock.now += 800

    assert await store.expire_idle(900) == []
    assert store.is_user_in_flow(USER_ID)


@pytest.mark.asyncio
async def test_hooks_receive_the_services_bundle(replies):
    seen = []

    async def on_enter(ctx):
        seen.append(ctx.services)

    registry = FlowRegistry()
    registry.register(FlowBuilder("with_services").step("a", on_enter=on_enter, on_input=_stay).build())
    services = object()
    store = SessionStore(registry, replies, services=services)

    await store.start_flow(USER_ID, "with_services")

    assert seen == [services]


@pytest.mark.asyncio
async def test_failing_cancel_hook_does_not_block_the_new_flow(replies, log):
    async def broken(ctx):
        raise RuntimeError("cancel hook failed")

    registry = FlowRegistry()
    registry.register(FlowBuilder("first").step("a", on_input=_stay).on_cancel(broken).build())
    registry.register(_build(log, "second", "x"))
    store = SessionStore(registry, replies)
    await store.start_flow(USER_ID, "first")

    await store.start_flow(USER_ID, "second")

    assert store.active_flow(USER_ID).name == "second"
    assert log.calls == [("enter", "second", "x")]


@pytest.mark.asyncio
async def test_flow_started_by_a_cancel_hook_is_superseded_normally(replies, log):
    async def restart_twice(ctx):
        await ctx.start_flow("second")
        await ctx.start_flow("third")

    registry = FlowRegistry()
    registry.register(FlowBuilder("first").step("a", on_input=_stay).on_cancel(restart_twice).build())
    registry.register(_build(log, "second", "x"))
    registry.register(_build(log, "third", "y"))
    store = SessionStore(registry, replies)
    await store.start_flow(USER_ID, "first")

    await store.cancel(USER_ID)

    assert store.active_flow(USER_ID).name == "third"
    assert log.of("cancel") == [("cancel", "second", CancelReason.SUPERSEDED)]


@pytest.mark.asyncio
async def test_go_to_enters_the_named_step_and_keeps_context(store, log):
    await store.start_flow(USER_ID, "transfer_balance")
    store.set_context(USER_ID, COUNT, 5)
    await store.advance(USER_ID)
    await store.advance(USER_ID)

    await store.go_to(USER_ID, "amount")

    assert store.get(USER_ID).step_index == 0
    assert store.get_context(USER_ID, COUNT) == 5
    assert log.calls[-1] == ("enter", "transfer_balance", "amount")


@pytest.mark.asyncio
async def test_go_to_without_flow(store):
    with pytest.raises(NoActiveFlowError):
        await store.go_to(USER_ID, "amount")
