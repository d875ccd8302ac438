# backend/tests/unit/test_session_registry.py
import asyncio

import pytest
from prometheus_client import REGISTRY

from riotbot.config import strings
from riotbot.services.tutorial_service import SessionRegistry, TutorialService, TutorialSession


def session_factory(flow, sender):
    def _factory(room_id, user_id):
        return TutorialSession(room_id, user_id, flow, sender)
    return _factory


@pytest.mark.asyncio
async def test_find_or_create_reuses_session_for_same_user(make_flow, sender):
    registry = SessionRegistry()
    factory = session_factory(make_flow([{"body": "a"}]), sender)

    first, created_first = await registry.find_or_create("!a:x", "@u:x", factory)
    second, created_second = await registry.find_or_create("!a:x", "@u:x", factory)
    other, created_other = await registry.find_or_create("!a:x", "@v:x", factory)

    assert created_first is True
    assert created_second is False
    assert second is first
    assert created_other is True
    assert len(registry) == 2


@pytest.mark.asyncio
async def test_lookup_is_by_user_only(make_flow, sender):
    registry = SessionRegistry()
    factory = session_factory(make_flow([{"body": "a"}]), sender)

    original, _ = await registry.find_or_create("!first:x", "@u:x", factory)
    found, created = await registry.find_or_create("!second:x", "@u:x", factory)

    assert created is False
    assert found is original
    assert found.room_id == "!first:x"


@pytest.mark.asyncio
async def test_concurrent_find_or_create_builds_one_session(make_flow, sender):
    registry = SessionRegistry()
    factory = session_factory(make_flow([{"body": "a"}]), sender)

    results = await asyncio.gather(*[
        registry.find_or_create("!a:x", "@u:x", factory) for _ in range(10)
    ])

    assert len(registry) == 1
    assert sum(1 for _, created in results if created) == 1
    assert len({id(session) for session, _ in results}) == 1


@pytest.mark.asyncio
async def test_prune_drops_completed_sessions(make_flow, sender):
    registry = SessionRegistry()
    flow = make_flow([{"body": "a"}])
    done, _ = await registry.find_or_create("!a:x", "@done:x", session_factory(flow, sender))
    waiting, _ = await registry.find_or_create("!a:x", "@waiting:x", session_factory(flow, sender))

    done.start()
    await done.wait_completed(timeout=1)

    assert registry.prune() == 1
    assert registry.sessions == [waiting]


@pytest.mark.asyncio
async def test_service_start_then_restart(make_flow, sender, wait_until):
    service = TutorialService(make_flow([{"body": "a", "delay": 60000}, {"body": "b"}]), sender)

    assert await service.start("!a:x", "@u:x") == strings.TUTORIAL_STARTING
    await wait_until(lambda: sender.send_message.await_count == 1)
    assert await service.start("!a:x", "@u:x") == strings.TUTORIAL_RESTARTING
    await wait_until(lambda: sender.send_message.await_count == 2)

    session = service.get_session("@u:x")
    assert session.epoch == 1
    assert session.current_step == 0
    assert len(service.registry) == 1
    await service.shutdown()


@pytest.mark.asyncio
async def test_rapid_double_start_runs_one_sequence(make_flow, sender):
    flow = make_flow(
        [{"body": "one", "delay": 5}, {"body": "two", "delay": 5}, {"body": "three"}],
        initial_delay=10,
    )
    service = TutorialService(flow, sender)

    await service.start("!a:x", "@u:x")
    await service.start("!a:x", "@u:x")
    await service.get_session("@u:x").wait_completed(timeout=1)
    await asyncio.sleep(0.05)

    assert [c.args[2] for c in sender.send_message.await_args_list] == ["one", "two", "three"]


@pytest.mark.asyncio
async def test_start_after_completion_begins_a_fresh_session(make_flow, sender):
    service = TutorialService(make_flow([{"body": "only"}]), sender)

    await service.start("!a:x", "@u:x")
    first = service.get_session("@u:x")
    await first.wait_completed(timeout=1)

    assert await service.start("!a:x", "@u:x") == strings.TUTORIAL_STARTING
    second = service.get_session("@u:x")
    assert second is not first
    assert len(service.registry) == 1
    await second.wait_completed(timeout=1)
    assert sender.send_message.await_count == 2


@pytest.mark.asyncio
async def test_shutdown_cancels_pending_steps(make_flow, sender):
    service = TutorialService(make_flow([{"body": "a"}], initial_delay=20), sender)

    await service.start("!a:x", "@u:x")
    await service.start("!a:x", "@v:x")
    await service.shutdown()
    await asyncio.sleep(0.05)

    sender.send_message.assert_not_awaited()
    assert len(service.registry) == 0


@pytest.mark.asyncio
async def test_active_gauge_drops_when_session_completes(make_flow, sender):
    service = TutorialService(make_flow([{"body": "only"}], initial_delay=20), sender)

    await service.start("!a:x", "@u:x")
    assert REGISTRY.get_sample_value("tutorial_sessions_active") == 1

    await service.get_session("@u:x").wait_completed(timeout=1)
    assert REGISTRY.get_sample_value("tutorial_sessions_active") == 0
