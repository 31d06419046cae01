"""Background job handlers run through the framework's task service."""
import pytest

from tieredmemory.models import TurnRole
from tieredmemory.services.tasks import get_task_service


@pytest.fixture
def task_service(v):
    return get_task_service(v)


async def test_handlers_registered(task_service):
    for task_type in ('consolidate_conversations', 'decay_memories', 'cleanup_memories', 'memory_health_check'):
        assert task_type in task_service._handlers


async def test_recurring_schedules_disabled_in_tests(task_service):
    assert task_service._recurring == {}


async def test_consolidate_single_conversation(task_service, memory_engine, storage_backend, user_id,
                                               conversation_id):
    await memory_engine.record_turn(user_id, conversation_id, TurnRole.USER, "I'm currently learning Rust")

    result = await task_service.run_now('consolidate_conversations',
                                        {'user_id': user_id, 'conversation_id': conversation_id})

    assert result['created_count'] == 1
    assert result['conversations_processed'] == 1
    assert (await storage_backend.get_conversation(user_id, conversation_id)).consolidated


async def test_pending_consolidation_skips_fresh_conversations(task_service, memory_engine, storage_backend,
                                                               user_id, conversation_id):
    await memory_engine.record_turn(user_id, conversation_id, TurnRole.USER, "I love Go")

    await task_service.run_now('consolidate_conversations', {'batch_size': 50})

    assert not (await storage_backend.get_conversation(user_id, conversation_id)).consolidated


async def test_decay_and_cleanup(task_service):
    decay = await task_service.run_now('decay_memories', {})
    assert decay['users_skipped'] == 0
    assert decay['forgotten_count'] >= 0

    cleanup = await task_service.run_now('cleanup_memories', {})
    assert set(cleanup) >= {'archived_count', 'deleted_count'}


async def test_health_check(task_service):
    report = await task_service.run_now('memory_health_check', {})
    assert report['storage'] == "ok"
    assert report['status'] in ("healthy", "issues_detected")
