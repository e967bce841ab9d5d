import pytest
from unittest.mock import MagicMock, patch
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import NotFoundError, ForbiddenError, UpstreamError, ValidationError
from app.models.models import InterviewSession, InterviewMessage, InterviewStatus, MessageRole, Voice
from app.utils.interview_session import InterviewSessionService, answered_count
from app.utils.quota import QuotaService

from conftest import TEST_USER_ID, OTHER_USER_ID, make_optimization


@pytest.fixture
def service(test_db, failing_ai, evaluation_task):
    return InterviewSessionService(test_db, ai_agent=failing_ai, evaluation_task=evaluation_task)


@pytest.fixture
def started(service, optimization, question_bank):
    return service.start_session(TEST_USER_ID, optimization.optimization_id)["session"]


class TestStartSession:
    """Test suite for InterviewSessionService.start_session."""

    def test_start_returns_first_question(self, service, optimization, question_bank):
        result = service.start_session(TEST_USER_ID, optimization.optimization_id)

        assert result["session"].status == InterviewStatus.IN_PROGRESS
        assert result["session"].end_time is None
        assert result["first_question"].question_id == question_bank[0].question_id

    def test_start_without_questions(self, service, optimization):
        result = service.start_session(TEST_USER_ID, optimization.optimization_id)
        assert result["first_question"] is None

    def test_start_counts_against_quota(self, test_db, service, optimization):
        service.start_session(TEST_USER_ID, optimization.optimization_id)
        assert QuotaService(test_db).interviews_used(TEST_USER_ID) == 1

    def test_quota_exhausted(self, test_db, failing_ai, evaluation_task, optimization):
        service = InterviewSessionService(test_db, ai_agent=failing_ai, quota=QuotaService(test_db, monthly_limit=1),
                                          evaluation_task=evaluation_task)
        service.start_session(TEST_USER_ID, optimization.optimization_id)

        with pytest.raises(ForbiddenError, match="quota"):
            service.start_session(TEST_USER_ID, optimization.optimization_id)
        assert test_db.query(InterviewSession).count() == 1

    def test_default_voice_accepted(self, test_db, service, optimization):
        voice = test_db.query(Voice).first()
        session = service.start_session(TEST_USER_ID, optimization.optimization_id, voice.voice_id)["session"]
        assert session.voice_id == voice.voice_id

    def test_unknown_voice_rejected(self, test_db, service, optimization):
        with pytest.raises(ValidationError):
            service.start_session(TEST_USER_ID, optimization.optimization_id, voice_id=999)
        assert test_db.query(InterviewSession).count() == 0

    def test_foreign_optimization(self, test_db, service):
        foreign = make_optimization(test_db, user_id=OTHER_USER_ID)
        with pytest.raises(ForbiddenError):
            service.start_session(TEST_USER_ID, foreign.optimization_id)
        assert test_db.query(InterviewSession).count() == 0

    def test_missing_optimization(self, service):
        with pytest.raises(NotFoundError):
            service.start_session(TEST_USER_ID, 999)


class TestSubmitAnswer:
    """Test suite for the answer loop."""

    def test_first_answer_returns_second_question(self, service, started, question_bank):
        result = service.submit_answer(TEST_USER_ID, started.session_id, "My answer")

        assert result["is_completed"] is False
        assert result["next_question"].question_id == question_bank[1].question_id

    def test_second_to_last_and_last_answers(self, service, started, question_bank):
        total = len(question_bank)
        for i in range(total - 2):
            service.submit_answer(TEST_USER_ID, started.session_id, f"Answer {i}")

        second_to_last = service.submit_answer(TEST_USER_ID, started.session_id, "Second to last")
        assert second_to_last["is_completed"] is False
        assert second_to_last["next_question"].question_id == question_bank[-1].question_id

        last = service.submit_answer(TEST_USER_ID, started.session_id, "Last")
        assert last == {"next_question": None, "is_completed": True}

    def test_exhaustion_does_not_complete_session(self, test_db, service, started, question_bank):
        for i in range(len(question_bank)):
            service.submit_answer(TEST_USER_ID, started.session_id, f"Answer {i}")

        test_db.refresh(started)
        assert started.status == InterviewStatus.IN_PROGRESS
        assert started.end_time is None

    def test_answers_are_numbered(self, test_db, service, started, question_bank):
        for i in range(3):
            service.submit_answer(TEST_USER_ID, started.session_id, f"Answer {i}", audio_url=f"/audio/{i}.webm")

        messages = test_db.query(InterviewMessage).order_by(InterviewMessage.message_id).all()
        assert [m.answer_index for m in messages] == [0, 1, 2]
        assert [m.role for m in messages] == [MessageRole.USER] * 3
        assert messages[2].audio_url == "/audio/2.webm"

    def test_answer_on_completed_session(self, service, started):
        service.end_session(TEST_USER_ID, started.session_id)
        with pytest.raises(ForbiddenError):
            service.submit_answer(TEST_USER_ID, started.session_id, "Late answer")

    def test_answer_on_foreign_session(self, test_db, service, started):
        with pytest.raises(ForbiddenError):
            service.submit_answer(OTHER_USER_ID, started.session_id, "Not mine")
        assert answered_count(test_db, started.session_id) == 0

    def test_answer_on_missing_session(self, service):
        with pytest.raises(NotFoundError):
            service.submit_answer(TEST_USER_ID, 999, "Nobody home")

    def test_slot_conflict_is_retried(self, test_db, service, started, question_bank):
        """A writer that loses the race for a slot recounts and gets the following question."""
        test_db.add(InterviewMessage(session_id=started.session_id, role=MessageRole.USER, content="Other", answer_index=0))
        test_db.commit()

        # first count is stale, as if read before the competing insert landed
        with patch("app.utils.interview_session.answered_count", side_effect=[0, 1]) as counter:
            result = service.submit_answer(TEST_USER_ID, started.session_id, "Mine")

        assert counter.call_count == 2
        assert result["next_question"].question_id == question_bank[2].question_id
        indexes = [m.answer_index for m in test_db.query(InterviewMessage).order_by(InterviewMessage.message_id)]
        assert indexes == [0, 1]

    def test_duplicate_answer_index_rejected_by_database(self, test_db, started):
        test_db.add(InterviewMessage(session_id=started.session_id, role=MessageRole.USER, content="a", answer_index=0))
        test_db.commit()
        test_db.add(InterviewMessage(session_id=started.session_id, role=MessageRole.USER, content="b", answer_index=0))
        with pytest.raises(IntegrityError):
            test_db.commit()
        test_db.rollback()


class TestSessionState:
    """Test suite for get_session_state and lookups."""

    def test_state_tracks_progress(self, service, started, question_bank):
        service.submit_answer(TEST_USER_ID, started.session_id, "One")
        service.submit_answer(TEST_USER_ID, started.session_id, "Two")

        state = service.get_session_state(TEST_USER_ID, started.session_id)
        assert state["progress"] == 2
        assert state["total"] == 10
        assert state["current_question"].question_id == question_bank[2].question_id

    def test_state_when_exhausted(self, service, started, question_bank):
        for i in range(len(question_bank)):
            service.submit_answer(TEST_USER_ID, started.session_id, f"Answer {i}")

        state = service.get_session_state(TEST_USER_ID, started.session_id)
        assert state["current_question"] is None
        assert state["progress"] == state["total"]

    def test_state_on_foreign_session(self, service, started):
        with pytest.raises(ForbiddenError):
            service.get_session_state(OTHER_USER_ID, started.session_id)

    def test_active_session(self, service, optimization, started):
        active = service.get_active_session(TEST_USER_ID, optimization.optimization_id)
        assert active.session_id == started.session_id

        service.end_session(TEST_USER_ID, started.session_id)
        assert service.get_active_session(TEST_USER_ID, optimization.optimization_id) is None


class TestEndSession:
    """Test suite for end_session."""

    def test_end_completes_and_queues_evaluation(self, service, started, evaluation_task):
        session = service.end_session(TEST_USER_ID, started.session_id)

        assert session.status == InterviewStatus.COMPLETED
        assert session.end_time is not None
        assert session.score is None
        evaluation_task.delay.assert_called_once_with(started.session_id)

    def test_end_twice_sets_fresh_end_time(self, service, started, evaluation_task):
        first = service.end_session(TEST_USER_ID, started.session_id).end_time
        second = service.end_session(TEST_USER_ID, started.session_id).end_time

        assert second >= first
        assert evaluation_task.delay.call_count == 2

    def test_end_without_answers(self, service, started):
        assert service.end_session(TEST_USER_ID, started.session_id).status == InterviewStatus.COMPLETED

    def test_end_foreign_session(self, service, started, evaluation_task):
        with pytest.raises(ForbiddenError):
            service.end_session(OTHER_USER_ID, started.session_id)
        assert evaluation_task.delay.call_count == 0

    def test_broker_failure_is_reported(self, test_db, service, started, evaluation_task):
        evaluation_task.delay.side_effect = ConnectionError("broker unreachable")

        with pytest.raises(UpstreamError):
            service.end_session(TEST_USER_ID, started.session_id)

        test_db.refresh(started)
        assert started.status == InterviewStatus.COMPLETED


class TestChatMode:
    """Test suite for handle_message."""

    def test_reply_is_appended(self, test_db, optimization, evaluation_task):
        agent = MagicMock()
        agent.chat_with_interviewer.return_value = {"content": "Tell me more.", "audio_url": None}
        service = InterviewSessionService(test_db, ai_agent=agent, evaluation_task=evaluation_task)
        session = service.start_session(TEST_USER_ID, optimization.optimization_id)["session"]

        reply = service.handle_message(TEST_USER_ID, session.session_id, "Hello")

        assert reply.role == MessageRole.ASSISTANT
        assert reply.content == "Tell me more."
        context, message, history = agent.chat_with_interviewer.call_args[0]
        assert "Jane Doe" in context
        assert "Backend Engineer" in context
        assert message == "Hello"
        assert history == []

        service.handle_message(TEST_USER_ID, session.session_id, "Second")
        history = agent.chat_with_interviewer.call_args[0][2]
        assert history == [{"role": "user", "content": "Hello"}, {"role": "assistant", "content": "Tell me more."}]
        assert answered_count(test_db, session.session_id) == 2

    def test_upstream_failure_keeps_user_message(self, test_db, service, started):
        with pytest.raises(UpstreamError):
            service.handle_message(TEST_USER_ID, started.session_id, "Hello?")

        messages = test_db.query(InterviewMessage).all()
        assert [m.role for m in messages] == [MessageRole.USER]

    def test_chat_requires_in_progress(self, service, started):
        service.end_session(TEST_USER_ID, started.session_id)
        with pytest.raises(ForbiddenError):
            service.handle_message(TEST_USER_ID, started.session_id, "Hello")
