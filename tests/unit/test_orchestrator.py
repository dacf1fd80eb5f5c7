"""
Unit tests for the SessionOrchestrator.

Runs the engine end to end against the scripted FakeGenerator and an
in-memory store (see conftest.py).
"""

import pytest
import pytest_asyncio

from studypath.core.errors import (
    GenerationFailed,
    InvalidTransition,
    PersistenceFailed,
    SessionNotFound,
)
from studypath.path import progression
from studypath.path.models import ChatMessage, ChatRole, OpenExercise, Session, Status, SubModule


@pytest_asyncio.fixture
async def session(orchestrator):
    return await orchestrator.create_session("Photosynthesis")


class TestCreateSession:
    @pytest.mark.asyncio
    async def test_bootstraps_and_persists(self, orchestrator, repository, generator):
        session = await orchestrator.create_session("  Photosynthesis ")

        assert session.topic == "Photosynthesis"
        assert [m.status for m in session.modules] == [Status.UNLOCKED, Status.LOCKED, Status.LOCKED]
        assert session.modules[0].sub_modules[0].status == Status.UNLOCKED
        assert session.modules[1].sub_modules == []
        assert session.revision == 1
        assert repository.load(session.id) == session
        assert generator.calls == [("initial_path", "Photosynthesis")]

    @pytest.mark.asyncio
    async def test_blank_topic(self, orchestrator, generator, store):
        with pytest.raises(InvalidTransition):
            await orchestrator.create_session("   ")

        assert generator.calls == []
        assert store.put_count == 0

    @pytest.mark.asyncio
    async def test_generation_failure_persists_nothing(self, orchestrator, generator, store):
        generator.fail_initial = True

        with pytest.raises(GenerationFailed) as exc_info:
            await orchestrator.create_session("Photosynthesis")

        assert exc_info.value.session is None
        assert store.put_count == 0
        assert orchestrator.list_sessions() == []

    @pytest.mark.asyncio
    async def test_empty_path_persists_nothing(self, orchestrator, generator, store):
        generator.path = []

        with pytest.raises(GenerationFailed):
            await orchestrator.create_session("Photosynthesis")

        assert store.put_count == 0

    @pytest.mark.asyncio
    async def test_sessions_are_independent(self, orchestrator, correct_answers):
        first = await orchestrator.create_session("Photosynthesis")
        second = await orchestrator.create_session("Photosynthesis")

        await orchestrator.submit_answers(first.id, "s1", correct_answers)

        assert first.id != second.id
        assert (await orchestrator.load_session(second.id)).modules[0].status == Status.UNLOCKED


class TestLoadSession:
    @pytest.mark.asyncio
    async def test_returns_stored_snapshot(self, orchestrator, session, generator):
        loaded = await orchestrator.load_session(session.id)

        assert loaded == session
        assert len(generator.calls) == 1

    @pytest.mark.asyncio
    async def test_missing(self, orchestrator):
        with pytest.raises(SessionNotFound):
            await orchestrator.load_session("missing")

    @pytest.mark.asyncio
    async def test_bootstraps_session_without_path(self, orchestrator, store, repository):
        empty = store.put(Session(topic="Photosynthesis"))

        loaded = await orchestrator.load_session(empty.id)

        assert loaded.id == empty.id
        assert len(loaded.modules) == 3
        assert repository.load(empty.id).modules[0].status == Status.UNLOCKED


class TestSelectSubModule:
    @pytest.mark.asyncio
    async def test_open_unlocked(self, orchestrator, session, store):
        writes = store.put_count
        sub = await orchestrator.select_sub_module(session.id, "s1")

        assert sub.id == "s1"
        assert store.put_count == writes + 1

    @pytest.mark.asyncio
    async def test_locked_selection_has_no_side_effects(self, orchestrator, session, store, correct_answers):
        await orchestrator.submit_answers(session.id, "s1", correct_answers)
        before = await orchestrator.load_session(session.id)
        writes = store.put_count

        with pytest.raises(InvalidTransition):
            await orchestrator.select_sub_module(session.id, "s2b")

        assert store.put_count == writes
        assert await orchestrator.load_session(session.id) == before

    @pytest.mark.asyncio
    async def test_sub_module_of_locked_module(self, orchestrator, session, store):
        writes = store.put_count

        with pytest.raises(InvalidTransition):
            await orchestrator.select_sub_module(session.id, "s3a")

        assert store.put_count == writes


class TestSubmitAnswers:
    @pytest.mark.asyncio
    async def test_partial_submission(self, orchestrator, session, generator):
        updated = await orchestrator.submit_answers(
            session.id, "s1", {"q1": "Chlorophyll", "q2": "Nitrogen", "q3": "Glucose"}
        )
        sub = updated.modules[0].sub_modules[0]

        assert sub.status == Status.UNLOCKED
        assert [e.is_correct for e in sub.exercises] == [True, False, True]
        assert updated.modules[1].status == Status.LOCKED
        assert generator.detail_calls() == []

    @pytest.mark.asyncio
    async def test_full_pass_unlocks_next_module(self, orchestrator, session, generator, correct_answers):
        updated = await orchestrator.submit_answers(session.id, "s1", correct_answers)

        first, second, third = updated.modules
        assert first.status == Status.COMPLETED
        assert first.sub_modules[0].status == Status.COMPLETED
        assert second.status == Status.UNLOCKED
        assert [s.id for s in second.sub_modules] == ["s2a", "s2b"]
        assert [s.status for s in second.sub_modules] == [Status.UNLOCKED, Status.LOCKED]
        assert third.status == Status.LOCKED
        assert third.sub_modules == []
        assert generator.detail_calls() == [("module_detail", "Calvin Cycle")]
        assert await orchestrator.load_session(session.id) == updated

    @pytest.mark.asyncio
    async def test_resubmission_is_idempotent(self, orchestrator, session, generator, correct_answers):
        first = await orchestrator.submit_answers(session.id, "s1", correct_answers)
        second = await orchestrator.submit_answers(session.id, "s1", correct_answers)

        assert [m.status for m in second.modules] == [m.status for m in first.modules]
        assert [s.id for s in second.modules[1].sub_modules] == ["s2a", "s2b"]
        assert len(generator.detail_calls()) == 1

    @pytest.mark.asyncio
    async def test_wrong_resubmission_does_not_relock(self, orchestrator, session, correct_answers):
        await orchestrator.submit_answers(session.id, "s1", correct_answers)
        updated = await orchestrator.submit_answers(session.id, "s1", {"q1": "Keratin"})

        assert updated.modules[0].status == Status.COMPLETED
        assert updated.modules[0].sub_modules[0].status == Status.COMPLETED
        assert updated.modules[0].sub_modules[0].exercises[0].user_answer == "Keratin"

    @pytest.mark.asyncio
    async def test_locked_submission_rejected(self, orchestrator, session, store, correct_answers):
        await orchestrator.submit_answers(session.id, "s1", correct_answers)
        writes = store.put_count

        with pytest.raises(InvalidTransition):
            await orchestrator.submit_answers(session.id, "s2b", {})

        assert store.put_count == writes

    @pytest.mark.asyncio
    async def test_generation_failure_keeps_completion(self, orchestrator, session, generator, correct_answers):
        generator.fail_detail = True

        with pytest.raises(GenerationFailed) as exc_info:
            await orchestrator.submit_answers(session.id, "s1", correct_answers)

        carried = exc_info.value.session
        assert carried is not None
        assert carried.modules[0].status == Status.COMPLETED
        assert carried.modules[1].status == Status.LOCKED
        assert carried.modules[1].sub_modules == []

        stored = await orchestrator.load_session(session.id)
        assert stored == carried

    @pytest.mark.asyncio
    async def test_resubmission_retries_failed_unlock(self, orchestrator, session, generator, correct_answers):
        generator.fail_detail = True
        with pytest.raises(GenerationFailed):
            await orchestrator.submit_answers(session.id, "s1", correct_answers)

        generator.fail_detail = False
        updated = await orchestrator.submit_answers(session.id, "s1", correct_answers)

        assert updated.modules[0].status == Status.COMPLETED
        assert updated.modules[1].status == Status.UNLOCKED
        assert len(generator.detail_calls()) == 2

    @pytest.mark.asyncio
    async def test_unlocking_unknown_module_rejected(self, orchestrator, session, generator):
        with pytest.raises(InvalidTransition):
            await orchestrator._unlock_next_module(session, "m9")

        assert generator.detail_calls() == []

    @pytest.mark.asyncio
    async def test_late_module_detail_is_discarded(self, orchestrator, session, generator, repository, correct_answers):
        competing = [SubModule(id="x1", title="From another request")]

        async def unlock_meanwhile():
            current = repository.load(session.id)
            updated, merged = progression.unlock_module(current, "m2", competing)
            assert merged
            repository.save(updated)

        generator.on_detail = unlock_meanwhile

        result = await orchestrator.submit_answers(session.id, "s1", correct_answers)

        assert [s.id for s in result.modules[1].sub_modules] == ["x1"]
        assert [s.id for s in repository.load(session.id).modules[1].sub_modules] == ["x1"]

    @pytest.mark.asyncio
    async def test_persistence_failure_carries_graded_session(
        self, orchestrator, session, store, generator, correct_answers
    ):
        store.fail_puts = True

        with pytest.raises(PersistenceFailed) as exc_info:
            await orchestrator.submit_answers(session.id, "s1", correct_answers)

        carried = exc_info.value.session
        assert carried.modules[0].status == Status.COMPLETED
        assert (await orchestrator.load_session(session.id)).modules[0].status == Status.UNLOCKED
        assert generator.detail_calls() == []

        store.fail_puts = False
        orchestrator.save_session(carried)
        retried = await orchestrator.submit_answers(session.id, "s1", correct_answers)

        assert retried.modules[1].status == Status.UNLOCKED

    @pytest.mark.asyncio
    async def test_walk_to_terminal_state(self, orchestrator, session, generator, correct_answers):
        generator.exercises = [OpenExercise(id="q5", question="What is regenerated?", correct_answer="RuBP")]

        await orchestrator.submit_answers(session.id, "s1", correct_answers)
        await orchestrator.submit_answers(session.id, "s2a", {"q4": "Rubisco"})
        await orchestrator.generate_exercises(session.id, "s2b")
        await orchestrator.submit_answers(session.id, "s2b", {"q5": "rubp"})
        final = await orchestrator.submit_answers(session.id, "s3a", {"q6": "Xylem"})

        assert [m.status for m in final.modules] == [Status.COMPLETED] * 3
        assert generator.detail_calls() == [
            ("module_detail", "Calvin Cycle"),
            ("module_detail", "Plant Physiology"),
        ]


class TestScratchpad:
    @pytest.mark.asyncio
    async def test_record_answer_persists(self, orchestrator, session):
        await orchestrator.record_answer(session.id, "q2", "Oxy")
        loaded = await orchestrator.load_session(session.id)

        assert loaded.answer_scratchpad == {"q2": "Oxy"}
        assert loaded.modules[0].sub_modules[0].exercises[1].user_answer is None

    @pytest.mark.asyncio
    async def test_record_unknown_exercise(self, orchestrator, session):
        with pytest.raises(InvalidTransition):
            await orchestrator.record_answer(session.id, "q404", "x")


class TestGenerateExercises:
    @pytest.mark.asyncio
    async def test_fills_open_sub_module(self, orchestrator, session, generator, correct_answers):
        generator.exercises = [OpenExercise(id="q5", question="What is regenerated?", correct_answer="RuBP")]
        await orchestrator.submit_answers(session.id, "s1", correct_answers)
        await orchestrator.submit_answers(session.id, "s2a", {"q4": "Rubisco"})

        updated = await orchestrator.generate_exercises(session.id, "s2b")

        _, sub = updated.find_sub_module("s2b")
        assert [e.id for e in sub.exercises] == ["q5"]
        assert ("exercises", "RuBP is regenerated.") in generator.calls

    @pytest.mark.asyncio
    async def test_rejects_sub_module_with_exercises(self, orchestrator, session):
        with pytest.raises(InvalidTransition):
            await orchestrator.generate_exercises(session.id, "s1")


class TestChat:
    @pytest.mark.asyncio
    async def test_append_message(self, orchestrator, session):
        message = ChatMessage(role=ChatRole.USER, text="Is this on the exam?")
        await orchestrator.append_chat_message(session.id, message)

        loaded = await orchestrator.load_session(session.id)
        assert loaded.chat_history == [message]

    @pytest.mark.asyncio
    async def test_ask_assistant(self, orchestrator, session, generator):
        updated = await orchestrator.ask_assistant(session.id, "s1", "Why are leaves green?")

        assert [(m.role, m.text) for m in updated.chat_history] == [
            (ChatRole.USER, "Why are leaves green?"),
            (ChatRole.ASSISTANT, generator.reply),
        ]
        _, question, context, history_length = generator.calls[-1]
        assert question == "Why are leaves green?"
        assert "Capturing Light" in context
        assert "Chlorophyll absorbs light." in context
        assert history_length == 0

    @pytest.mark.asyncio
    async def test_ask_assistant_failure_keeps_question(self, orchestrator, session, generator):
        generator.fail_chat = True

        with pytest.raises(GenerationFailed) as exc_info:
            await orchestrator.ask_assistant(session.id, "s1", "Why are leaves green?")

        assert [m.text for m in exc_info.value.session.chat_history] == ["Why are leaves green?"]
        loaded = await orchestrator.load_session(session.id)
        assert [m.role for m in loaded.chat_history] == [ChatRole.USER]

    @pytest.mark.asyncio
    async def test_ask_assistant_locked_sub_module(self, orchestrator, session, generator):
        with pytest.raises(InvalidTransition):
            await orchestrator.ask_assistant(session.id, "s3a", "Hello?")

        assert not any(call[0] == "chat" for call in generator.calls)


class TestListingAndDeletion:
    @pytest.mark.asyncio
    async def test_list_sessions(self, orchestrator, correct_answers):
        older = await orchestrator.create_session("Photosynthesis")
        newer = await orchestrator.create_session("Cell Biology")
        await orchestrator.submit_answers(older.id, "s1", correct_answers)

        summaries = orchestrator.list_sessions()

        assert [s.id for s in summaries] == [older.id, newer.id]
        assert summaries[0].completed_modules == 1
        assert summaries[1].completed_modules == 0

    @pytest.mark.asyncio
    async def test_delete_session(self, orchestrator, session):
        orchestrator.delete_session(session.id)

        with pytest.raises(SessionNotFound):
            await orchestrator.load_session(session.id)
        with pytest.raises(SessionNotFound):
            orchestrator.delete_session(session.id)

    @pytest.mark.asyncio
    async def test_module_progress(self, orchestrator, session, correct_answers):
        await orchestrator.submit_answers(session.id, "s1", correct_answers)

        progress = orchestrator.module_progress(session.id)

        assert [(p.module_id, p.percent) for p in progress] == [("m1", 100.0), ("m2", 0.0), ("m3", 0.0)]
