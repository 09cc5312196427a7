# FILE: tests/conftest.py

import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest
from cbt_engine.config import get_settings
from cbt_engine.models.exams import EssayQuestion, ExamDescriptor, ExamType, ObjectiveQuestion
from cbt_engine.services.attempt_engine import AttemptEngine
from cbt_engine.services.exam_catalog import ExamCatalog
from cbt_engine.services.ordering_store import OrderingStore
from cbt_engine.services.result_store import ResultStore


class FakeClock:
    """Manually advanced wall clock (epoch seconds)"""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture(scope="session")
def settings():
    """Provide settings for tests"""
    return get_settings()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def catalog(tmp_path):
    return ExamCatalog(str(tmp_path / "exams"))


@pytest.fixture
def ordering_store(tmp_path):
    return OrderingStore(str(tmp_path / "orderings"))


@pytest.fixture
def result_store(tmp_path):
    return ResultStore(str(tmp_path / "results"))


@pytest.fixture
def engine(catalog, ordering_store, result_store, clock):
    """Engine with a manual clock; tests drive the countdown with tick()"""
    engine = AttemptEngine(
        catalog=catalog,
        ordering_store=ordering_store,
        result_sink=result_store,
        review_threshold=0.7,
        clock=clock,
        auto_tick=False
    )
    yield engine
    engine.shutdown()


@pytest.fixture
def objective_questions():
    """Ten four-option questions"""
    return [
        ObjectiveQuestion(
            id=f"q{i}",
            prompt_text=f"Question {i}?",
            options=[f"q{i}-a", f"q{i}-b", f"q{i}-c", f"q{i}-d"],
            correct_option_index=i % 4
        )
        for i in range(1, 11)
    ]


@pytest.fixture
def essay_questions():
    return [
        EssayQuestion(
            id="e1",
            prompt_text="Describe cell division.",
            rubric_keywords="mitosis,chromosome,cell",
            min_words=50
        ),
        EssayQuestion(
            id="e2",
            prompt_text="What is photosynthesis?",
            rubric_keywords="light,chlorophyll,glucose",
            min_words=10,
            model_answer="Plants use light and chlorophyll to make glucose"
        ),
    ]


@pytest.fixture
def objective_exam():
    return ExamDescriptor(
        id="math-101",
        title="Math 101",
        type=ExamType.OBJECTIVE,
        duration_minutes=1
    )


@pytest.fixture
def essay_exam():
    return ExamDescriptor(
        id="bio-essay",
        title="Biology essay",
        type=ExamType.ESSAY,
        duration_minutes=30,
        randomize_options=False
    )

