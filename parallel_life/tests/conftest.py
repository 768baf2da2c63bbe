import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

from parallel_life.agents.narrative.illustrator import IllustrationScheduler
from parallel_life.agents.narrative.writer import TextGenerationClient
from parallel_life.api.deps import get_illustrator, get_text_client
from parallel_life.api.rate_limit import limiter
from parallel_life.core.config import settings as app_settings
from parallel_life.core.graph.workflow import StoryOrchestrator
from parallel_life.core.security import get_password_hash
from parallel_life.db.models import Plan, Story, StorySegment, User
from parallel_life.db.session import get_session
from parallel_life.db.store import StoryStore
from parallel_life.main import app
from parallel_life.tests.fakes import (
    FakeGroq,
    FakePainter,
    SleepRecorder,
    auth_headers,
    make_request,
    make_settings,
)


# Cheap hashes keep the fixtures fast
app_settings.BCRYPT_ROUNDS = 4

TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool
)


# =========================
# DATABASE
# =========================

@pytest.fixture(name="session")
def session_fixture():

    SQLModel.metadata.create_all(engine)

    with Session(engine) as session:
        yield session

    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="test_user")
def test_user_fixture(session: Session):
    """Create a regular free-plan user."""
    user = User(
        email="testuser@parallel.life",
        hashed_password=get_password_hash("testpassword"),
        nickname="Tester",
        plan=Plan.FREE,
        usage_count=0,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture(name="other_user")
def other_user_fixture(session: Session):
    user = User(
        email="other@parallel.life",
        hashed_password=get_password_hash("otherpassword"),
        nickname="Other",
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture(name="test_story")
def test_story_fixture(session: Session, test_user: User):
    """A public story with three illustrated segments."""
    story = Story(
        user_id=test_user.id,
        title="Test Story",
        summary="A test summary",
        input_data=make_request().to_input_data(),
        tone="warm",
        cover_image_url="https://images.test/cover.png",
        illustration_policy={"cover": True, "segments": True},
    )
    session.add(story)
    session.commit()
    session.refresh(story)

    for order in range(1, 4):
        session.add(StorySegment(
            story_id=story.id,
            segment_order=order,
            title=f"Segment {order}",
            content=f"Content {order}",
            image_url=f"https://images.test/{order}.png",
        ))
    session.commit()
    return story


# =========================
# PIPELINE
# =========================

@pytest.fixture(name="settings")
def settings_fixture():
    return make_settings()


@pytest.fixture(name="fake_llm")
def fake_llm_fixture():
    return FakeGroq()


@pytest.fixture(name="fake_painter")
def fake_painter_fixture():
    return FakePainter()


@pytest.fixture(name="sleeps")
def sleeps_fixture():
    return SleepRecorder()


@pytest.fixture(name="writer")
def writer_fixture(settings, fake_llm, sleeps):
    return TextGenerationClient(settings, client=fake_llm, sleep=sleeps)


@pytest.fixture(name="illustrator")
def illustrator_fixture(settings, fake_painter, sleeps):
    return IllustrationScheduler(settings, fake_painter, sleep=sleeps)


@pytest.fixture(name="orchestrator")
def orchestrator_fixture(settings, session, writer, illustrator):
    return StoryOrchestrator(settings, StoryStore(session), writer, illustrator)


# =========================
# API CLIENTS
# =========================

@pytest.fixture(name="client")
def client_fixture(session: Session, writer, illustrator):
    # Rate limit counters live in process memory
    limiter.reset()

    def get_session_override():
        return session

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_text_client] = lambda: writer
    app.dependency_overrides[get_illustrator] = lambda: illustrator

    client = TestClient(app)
    yield client

    app.dependency_overrides.clear()


@pytest.fixture(name="auth_client")
def auth_client_fixture(client: TestClient, test_user: User):
    """Client sending the bearer token of the regular user."""
    client.headers.update(auth_headers(test_user))
    return client
