import os
import tempfile

# Settings are read at import time, so the environment is prepared before the app is imported
_AUDIO_DIR = tempfile.mkdtemp(prefix="intervai-audio-")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["OPENAI_API_KEY"] = "test-key"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["INTERVIEW_DIR"] = _AUDIO_DIR
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"

import pytest
from unittest.mock import MagicMock
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.core.database import Base, get_db
from app.middleware.rate_limit import limiter
from app.models.models import Resume, Job, Optimization
from app.utils.evaluation import get_evaluation_task
from app.utils.oauth_utils import create_access_token
from app.utils.question_templates import generate_rule_based_questions
from app.utils.question_generator import QuestionGenerator
from app.utils.voice_service import seed_default_voices


TEST_USER_ID = 1
OTHER_USER_ID = 2

RESUME_DATA = {
    "personalInfo": {"name": "Jane Doe", "email": "jane@example.com"},
    "skills": ["JavaScript"],
    "experience": [{"position": "Engineer", "company": "Acme"}],
    "education": [{"degree": "BS", "field": "CS", "institution": "MIT"}],
}

JOB_DATA = {
    "requiredSkills": ["JavaScript", "AWS"],
    "responsibilities": ["Build APIs"],
    "title": "Backend Engineer",
    "company": "Acme",
}


@pytest.fixture(scope="function")
def test_engine():
    """In-memory SQLite shared by every connection of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def test_db(test_engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)
    session = TestingSessionLocal()
    seed_default_voices(session)

    yield session

    session.rollback()
    session.close()


@pytest.fixture(scope="function")
def evaluation_task():
    """Stands in for the Celery task; tests assert on delay() calls."""
    return MagicMock()


@pytest.fixture(scope="function")
def client(test_db, evaluation_task):
    """Create a test client with database and evaluation task overrides."""
    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_evaluation_task] = lambda: evaluation_task
    limiter.reset()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    limiter.reset()


@pytest.fixture
def auth_token():
    return create_access_token("testuser", TEST_USER_ID)


@pytest.fixture
def auth_headers(auth_token):
    return {"Authorization": f"Bearer {auth_token}"}


@pytest.fixture
def other_headers():
    return {"Authorization": f"Bearer {create_access_token('otheruser', OTHER_USER_ID)}"}


def make_optimization(db, user_id=TEST_USER_ID, resume_data=None, job_data=None):
    resume = Resume(user_id=user_id, resume_title="Resume", parsed_data=RESUME_DATA if resume_data is None else resume_data)
    job = Job(user_id=user_id, title="Backend Engineer", company="Acme", parsed_requirements=JOB_DATA if job_data is None else job_data)
    db.add_all([resume, job])
    db.commit()

    optimization = Optimization(user_id=user_id, resume_id=resume.resume_id, job_id=job.job_id)
    db.add(optimization)
    db.commit()
    db.refresh(optimization)
    return optimization


@pytest.fixture
def optimization(test_db):
    return make_optimization(test_db)


@pytest.fixture
def failing_ai():
    """AI agent whose every call raises."""
    agent = MagicMock()
    agent.generate_interview_questions.side_effect = Exception("AI unavailable")
    agent.generate.side_effect = Exception("AI unavailable")
    agent.chat_with_interviewer.side_effect = Exception("AI unavailable")
    return agent


@pytest.fixture
def question_bank(test_db, optimization, failing_ai):
    """Ten rule-based questions for the optimization."""
    return QuestionGenerator(test_db, failing_ai).generate_questions(optimization.optimization_id, TEST_USER_ID, 10)


@pytest.fixture
def rule_questions():
    return generate_rule_based_questions(RESUME_DATA, JOB_DATA, 12)
