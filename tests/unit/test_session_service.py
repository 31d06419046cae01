"""Unit tests for the short-term and working tiers."""
import pytest

from tieredmemory.models import ConversationTurn, TurnRole
from tieredmemory.services.cache.lru import LRUCacheService
from tieredmemory.services.session.default import DefaultSessionContextService
from tieredmemory.services.storage.in_memory import MemoryStorageBackend
from tieredmemory.services.summarization.heuristic import HeuristicSummarizationService


@pytest.fixture
def storage():
    return MemoryStorageBackend()


@pytest.fixture
def session(storage):
    return DefaultSessionContextService(
        storage=storage,
        cache=LRUCacheService(maxsize=64),
        summarizer=HeuristicSummarizationService(),
        short_term_turns=3,
        working_turns=10,
        summarize_threshold=5,
    )


async def _record(session, count: int, user_id: str = "u1", conversation_id: str = "c1"):
    turns = []
    for i in range(count):
        role = TurnRole.USER if i % 2 == 0 else TurnRole.ASSISTANT
        content = f"Discussing deployment pipelines item {i}" if role == TurnRole.USER else f"Answer {i}"
        turns.append(await session.record_turn(user_id, conversation_id, role, content, turn_id=f"t{i}"))
    return turns


class TestSessionContext:

    async def test_unknown_conversation_is_empty(self, session):
        context = await session.get_context("u1", "nope")
        assert context.recent_turns == []
        assert context.summary is None
        assert session.stats['lookups'] == 0

    async def test_recent_turns_verbatim(self, session):
        await _record(session, 2)
        context = await session.get_context("u1", "c1")

        assert [t.id for t in context.recent_turns] == ["t0", "t1"]
        assert context.summary is None
        assert context.turn_count == 2
        assert context.fingerprint == "2:t1"

    async def test_window_keeps_last_turns(self, session):
        await _record(session, 4)
        context = await session.get_context("u1", "c1")
        assert [t.id for t in context.recent_turns] == ["t1", "t2", "t3"]
        assert context.summary is None

    async def test_summary_after_threshold(self, session):
        await _record(session, 7)
        context = await session.get_context("u1", "c1")

        assert [t.id for t in context.recent_turns] == ["t4", "t5", "t6"]
        assert context.summarized_through == 4
        assert context.summary.startswith("Discussed 4 messages covering topics: discussing, deployment, pipelines")

    async def test_cache_hit_counted(self, session):
        await _record(session, 2)
        await session.get_context("u1", "c1")
        await session.get_context("u1", "c1")
        assert session.stats == {'lookups': 2, 'hits': 2}

    async def test_stale_context_is_rebuilt(self, session, storage):
        await _record(session, 2)
        await session.get_context("u1", "c1")

        # written behind the session service's back
        await storage.append_turn(ConversationTurn(id="t2", user_id="u1", conversation_id="c1",
                                                   role=TurnRole.USER, content="A new question"))
        context = await session.get_context("u1", "c1")

        assert context.recent_turns[-1].id == "t2"
        assert context.fingerprint == "3:t2"
        assert session.stats == {'lookups': 2, 'hits': 1}

    async def test_invalidate(self, session):
        await _record(session, 7)
        await session.get_context("u1", "c1")

        # one session key plus the summaries built at turn 6 and turn 7
        assert await session.invalidate("u1", "c1") == 3
        await session.get_context("u1", "c1")
        assert session.stats['hits'] == 1

    async def test_invalidate_all_conversations_of_user(self, session):
        await _record(session, 2, conversation_id="c1")
        await _record(session, 2, conversation_id="c2")
        await _record(session, 2, user_id="u2", conversation_id="c1")

        assert await session.invalidate("u1") == 2
        await session.get_context("u2", "c1")
        assert session.stats == {'lookups': 1, 'hits': 1}
