"""
Session Orchestrator: public entry point of the progression engine.

Composes the generator, the progression rules and the repository. Every
operation takes a session id, never a process-wide "current session", and
returns a fresh snapshot.

Calls for one session id are expected to be serialized by the caller. The
engine does no locking of its own; the only suspending calls are content
generation requests.

Late generation results are merged into a re-fetched snapshot rather than
the one the request started from. A result that no longer applies (the
module was unlocked meanwhile, the exercise list was filled) is discarded.
"""

from __future__ import annotations

from collections.abc import Mapping

from loguru import logger

from studypath.core.errors import GenerationFailed, InvalidTransition
from studypath.path import progression
from studypath.path.generator import ContentGenerator
from studypath.path.models import (
    ChatMessage,
    ChatRole,
    ModuleProgress,
    Session,
    SessionSummary,
    SubModule,
)
from studypath.path.repository import SessionRepository


class SessionOrchestrator:
    """Services learner operations for any number of sessions."""

    def __init__(self, repository: SessionRepository, generator: ContentGenerator):
        self.repository = repository
        self.generator = generator

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def create_session(self, topic: str) -> Session:
        """
        Generate a learning path for a topic and persist it as a new session.

        Raises:
            InvalidTransition: blank topic
            GenerationFailed: nothing is persisted
            PersistenceFailed: carrying the generated session
        """
        topic = topic.strip()
        if not topic:
            raise InvalidTransition("Topic must not be empty")

        modules = await self.generator.generate_initial_path(topic)
        session = progression.bootstrap(Session(topic=topic), modules)

        stored = self.repository.save(session)
        logger.info(f"Created session {stored.id} for {topic!r} with {len(stored.modules)} modules")
        return stored

    async def load_session(self, session_id: str) -> Session:
        """Return a stored session, generating its path first if it has none."""
        session = self.repository.load(session_id)
        if session.modules:
            return session

        logger.info(f"Session {session_id} has no learning path yet, generating")
        modules = await self.generator.generate_initial_path(session.topic)
        current = self.repository.load(session_id)
        if current.modules:
            logger.debug(f"Session {session_id} was bootstrapped meanwhile, discarding late path")
            return current
        return self.repository.save(progression.bootstrap(current, modules))

    def save_session(self, session: Session) -> Session:
        """Persist a snapshot, e.g. one carried by a PersistenceFailed."""
        return self.repository.save(session)

    def list_sessions(self) -> list[SessionSummary]:
        return self.repository.summaries()

    def delete_session(self, session_id: str) -> None:
        self.repository.delete(session_id)
        logger.info(f"Deleted session {session_id}")

    def module_progress(self, session_id: str) -> list[ModuleProgress]:
        return progression.module_progress(self.repository.load(session_id))

    # ------------------------------------------------------------------
    # Progression
    # ------------------------------------------------------------------

    async def select_sub_module(self, session_id: str, sub_module_id: str) -> SubModule:
        """
        Open a sub-module.

        Locked or unknown sub-modules raise InvalidTransition without
        touching the store.
        """
        session = self.repository.load(session_id)
        try:
            sub = progression.select_sub_module(session, sub_module_id)
        except InvalidTransition as e:
            logger.warning(f"Rejected selection in session {session_id}: {e.reason}")
            raise

        self.repository.save(session)
        return sub

    async def submit_answers(
        self,
        session_id: str,
        sub_module_id: str,
        answers: Mapping[str, str],
    ) -> Session:
        """
        Grade a submission, advance statuses and unlock the next module.

        Progress is persisted before the next module is requested. If that
        request fails, GenerationFailed is raised with the persisted session
        attached: completion is kept, the next module stays locked.
        """
        session = self.repository.load(session_id)
        try:
            outcome = progression.apply_submission(session, sub_module_id, answers)
        except InvalidTransition as e:
            logger.warning(f"Rejected submission in session {session_id}: {e.reason}")
            raise

        stored = self.repository.save(outcome.session)
        logger.info(
            f"Graded sub-module {sub_module_id} in session {session_id}: "
            f"{'passed' if outcome.all_correct else 'not passed'}"
        )

        if outcome.next_module_id is None:
            return stored
        return await self._unlock_next_module(stored, outcome.next_module_id)

    async def _unlock_next_module(self, session: Session, module_id: str) -> Session:
        module = session.get_module(module_id)
        if module is None:
            raise InvalidTransition(f"Unknown module {module_id}")

        try:
            sub_modules = await self.generator.generate_module_detail(module.title, session.topic)
        except GenerationFailed as e:
            logger.warning(f"Could not unlock module {module_id} in session {session.id}: {e.cause}")
            raise GenerationFailed(e.cause, session=session) from e

        current = self.repository.load(session.id)
        updated, merged = progression.unlock_module(current, module_id, sub_modules)
        if not merged:
            logger.debug(
                f"Module {module_id} in session {session.id} changed since revision "
                f"{session.revision}, discarding generated content"
            )
            return current

        stored = self.repository.save(updated)
        logger.info(f"Unlocked module {module_id} in session {session.id}")
        return stored

    # ------------------------------------------------------------------
    # Scratchpad & exercises
    # ------------------------------------------------------------------

    async def record_answer(self, session_id: str, exercise_id: str, value: str) -> Session:
        """Persist a draft answer without grading it."""
        session = self.repository.load(session_id)
        return self.repository.save(progression.record_answer(session, exercise_id, value))

    async def generate_exercises(self, session_id: str, sub_module_id: str) -> Session:
        """Fill an open sub-module that came without exercises."""
        session = self.repository.load(session_id)
        sub = progression.select_sub_module(session, sub_module_id)
        if sub.exercises:
            raise InvalidTransition(f"Sub-module {sub_module_id} already has exercises")

        exercises = await self.generator.generate_exercises(sub.content)

        current = self.repository.load(session_id)
        updated, merged = progression.populate_exercises(current, sub_module_id, exercises)
        if not merged:
            logger.debug(f"Sub-module {sub_module_id} was filled meanwhile, discarding exercises")
            return current
        return self.repository.save(updated)

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    async def append_chat_message(self, session_id: str, message: ChatMessage) -> Session:
        session = self.repository.load(session_id)
        return self.repository.save(progression.append_chat(session, message))

    async def ask_assistant(self, session_id: str, sub_module_id: str, text: str) -> Session:
        """
        Ask the assistant about the open sub-module.

        The question is persisted before the reply is requested, so it is
        kept even if the assistant call fails.
        """
        session = self.repository.load(session_id)
        sub = progression.select_sub_module(session, sub_module_id)
        history = list(session.chat_history)

        question = ChatMessage(role=ChatRole.USER, text=text)
        stored = self.repository.save(progression.append_chat(session, question))

        try:
            reply = await self.generator.chat_reply(history, text, _assistant_context(sub))
        except GenerationFailed as e:
            raise GenerationFailed(e.cause, session=stored) from e

        current = self.repository.load(session_id)
        answer = ChatMessage(role=ChatRole.ASSISTANT, text=reply)
        return self.repository.save(progression.append_chat(current, answer))


def _assistant_context(sub: SubModule) -> str:
    lessons = "\n\n".join(f"## {lesson.title}\n{lesson.content}" for lesson in sub.lessons)
    return f"# {sub.title}\n{sub.content}\n\n{lessons}".strip()
