"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests:
a scripted content generator, an in-memory store that counts writes, and a
small three-module "Photosynthesis" learning path.
"""
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from studypath.core.errors import GenerationFailed  # noqa: E402
from studypath.path import progression  # noqa: E402
from studypath.path.models import (  # noqa: E402
    ChoiceExercise,
    Lesson,
    Module,
    OpenExercise,
    Session,
    Status,
    SubModule,
)
from studypath.path.orchestrator import SessionOrchestrator  # noqa: E402
from studypath.path.repository import InMemorySessionStore, SessionRepository  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (HTTP API)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


# =============================================================================
# Doubles
# =============================================================================


class FakeGenerator:
    """Scripted content generator that records every call."""

    def __init__(self, path: list[Module], details: dict[str, list[SubModule]]):
        self.path = path
        self.details = details
        self.exercises = []
        self.reply = "Chlorophyll absorbs mostly blue and red light."
        self.fail_initial = False
        self.fail_detail = False
        self.fail_chat = False
        # Awaited just before module detail is returned (simulates a slow call)
        self.on_detail = None
        self.calls = []

    async def generate_initial_path(self, topic):
        self.calls.append(("initial_path", topic))
        if self.fail_initial:
            raise GenerationFailed("service unavailable")
        return [module.model_copy(deep=True) for module in self.path]

    async def generate_module_detail(self, module_title, topic):
        self.calls.append(("module_detail", module_title))
        if self.fail_detail:
            raise GenerationFailed("service unavailable")
        if self.on_detail is not None:
            await self.on_detail()
        return [sub.model_copy(deep=True) for sub in self.details.get(module_title, [])]

    async def generate_exercises(self, content):
        self.calls.append(("exercises", content))
        return [exercise.model_copy(deep=True) for exercise in self.exercises]

    async def chat_reply(self, history, message, context):
        self.calls.append(("chat", message, context, len(history)))
        if self.fail_chat:
            raise GenerationFailed("service unavailable")
        return self.reply

    def detail_calls(self):
        return [call for call in self.calls if call[0] == "module_detail"]


class CountingStore(InMemorySessionStore):
    """In-memory store that counts writes and can be told to fail them."""

    def __init__(self):
        super().__init__()
        self.put_count = 0
        self.fail_puts = False

    def put(self, session):
        if self.fail_puts:
            raise OSError("disk full")
        self.put_count += 1
        return super().put(session)


# =============================================================================
# Learning path content
# =============================================================================


@pytest.fixture
def photosynthesis_path():
    """Raw generator output: three modules, later ones wrongly pre-populated."""
    light_reactions = SubModule(
        id="s1",
        title="Capturing Light",
        content="How plants turn light into chemical energy.",
        lessons=[
            Lesson(id="l1", title="Pigments", content="Chlorophyll absorbs light."),
            Lesson(id="l2", title="Photosystems", content="Photosystem II splits water."),
        ],
        exercises=[
            ChoiceExercise(
                id="q1",
                question="Which pigment absorbs light?",
                options=["Chlorophyll", "Keratin", "Melanin", "Hemoglobin"],
                correct_answer="Chlorophyll",
            ),
            OpenExercise(id="q2", question="Which gas is released?", correct_answer="Oxygen"),
            OpenExercise(id="q3", question="Which sugar is produced?", correct_answer="Glucose"),
        ],
        status=Status.UNLOCKED,
    )
    leaked = SubModule(id="leak", title="Should be cleared", status=Status.UNLOCKED)
    return [
        Module(id="m1", title="Light Reactions", description="Energy capture", sub_modules=[light_reactions]),
        Module(
            id="m2",
            title="Calvin Cycle",
            description="Carbon fixation",
            status=Status.UNLOCKED,
            sub_modules=[leaked],
        ),
        Module(id="m3", title="Plant Physiology", description="Transport", status=Status.COMPLETED),
    ]


@pytest.fixture
def module_details():
    """Generator output for the modules that unlock later."""
    return {
        "Calvin Cycle": [
            SubModule(
                id="s2a",
                title="Carbon Fixation",
                content="CO2 is fixed by an enzyme.",
                exercises=[OpenExercise(id="q4", question="Which enzyme fixes CO2?", correct_answer="Rubisco")],
                status=Status.UNLOCKED,
            ),
            # Returned without exercises and with a bogus status
            SubModule(id="s2b", title="Regeneration", content="RuBP is regenerated.", status=Status.COMPLETED),
        ],
        "Plant Physiology": [
            SubModule(
                id="s3a",
                title="Transport",
                content="Water moves up the plant.",
                exercises=[OpenExercise(id="q6", question="Which tissue carries water?", correct_answer="Xylem")],
            ),
        ],
    }


@pytest.fixture
def correct_answers():
    return {"q1": "chlorophyll", "q2": "  Oxygen ", "q3": "GLUCOSE"}


@pytest.fixture
def bootstrapped_session(photosynthesis_path):
    """A session straight after bootstrap, without going through a store."""
    return progression.bootstrap(Session(topic="Photosynthesis"), photosynthesis_path)


# =============================================================================
# Engine wiring
# =============================================================================


@pytest.fixture
def generator(photosynthesis_path, module_details):
    return FakeGenerator(photosynthesis_path, module_details)


@pytest.fixture
def store():
    return CountingStore()


@pytest.fixture
def repository(store):
    return SessionRepository(store)


@pytest.fixture
def orchestrator(repository, generator):
    return SessionOrchestrator(repository, generator)
