from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.exceptions import AppError, NotFoundError, ForbiddenError, UpstreamError, ValidationError
from ..models.models import InterviewSession, InterviewMessage, InterviewQuestion, InterviewStatus, MessageRole
from .ai_agent import AiAgent
from .evaluation import run_evaluation_job
from .logger import logger
from .profile_data import candidate_name, requirements_text
from .question_generator import get_owned_optimization, list_questions, optimization_profile
from .quota import QuotaService
from .time_helpers import utc_now
from .voice_service import VoiceService


# concurrent submissions on the same session retry this many times before giving up
MAX_ANSWER_ATTEMPTS = 5
CHAT_REQUIREMENTS_LIMIT = 500


def get_owned_session(db: Session, session_id: int, user_id: int) -> InterviewSession:
    """
    Raises:
        NotFoundError: no such session
        ForbiddenError: session belongs to another user
    """
    session = db.get(InterviewSession, session_id)
    if not session:
        raise NotFoundError(f"Interview session with ID {session_id} not found")

    if session.user_id != user_id:
        logger.warning(f"Session ownership check failed", session_id=session_id, user_id=user_id)
        raise ForbiddenError("You do not have permission to access this interview session")

    return session


def answered_count(db: Session, session_id: int) -> int:
    return (
        db.query(func.count(InterviewMessage.message_id))
        .filter(InterviewMessage.session_id == session_id, InterviewMessage.role == MessageRole.USER)
        .scalar()
    ) or 0


class InterviewSessionService:
    """
    Lifecycle of a mock interview: start, the answer loop, chat mode and the
    explicit end that hands the session to the evaluation worker.
    """

    def __init__(
        self,
        db: Session,
        ai_agent: AiAgent = None,
        quota: QuotaService = None,
        voice_service: VoiceService = None,
        evaluation_task=None,
    ):
        self.db = db
        self.ai_agent = ai_agent or AiAgent()
        self.quota = quota or QuotaService(db)
        self.voice_service = voice_service or VoiceService(db, self.ai_agent)
        self.evaluation_task = evaluation_task or run_evaluation_job

    def start_session(self, user_id: int, optimization_id: int, voice_id: int = None) -> dict:
        """
        Create an IN_PROGRESS session for an optimization.

        :return: {"session": InterviewSession, "first_question": InterviewQuestion | None}
        """
        self.quota.enforce_interview_quota(user_id)

        if voice_id is not None and not self.voice_service.is_available(user_id, voice_id):
            raise ValidationError(f"Voice with ID {voice_id} is not available")

        get_owned_optimization(self.db, optimization_id, user_id)

        session = InterviewSession(
            user_id=user_id,
            optimization_id=optimization_id,
            voice_id=voice_id,
            status=InterviewStatus.IN_PROGRESS,
            start_time=utc_now(),
        )
        self.db.add(session)
        self.db.commit()
        self.db.refresh(session)

        self.quota.increment_interview_count(user_id)

        questions = list_questions(self.db, optimization_id)
        logger.info(f"Interview session started", session_id=session.session_id, optimization_id=optimization_id, question_count=len(questions))
        return {"session": session, "first_question": questions[0] if questions else None}

    def submit_answer(self, user_id: int, session_id: int, content: str, audio_url: str = None) -> dict:
        """
        Record an answer and hand back the next question in the sequence.

        Reaching the end of the question bank reports is_completed but leaves
        the session IN_PROGRESS; end_session is the only way to complete it.

        :return: {"next_question": InterviewQuestion | None, "is_completed": bool}
        """
        session = self._get_active_session(session_id, user_id)
        message = self._append_user_message(session, content, audio_url)

        answered = message.answer_index + 1
        questions = list_questions(self.db, session.optimization_id)

        if answered < len(questions):
            logger.debug(f"Answer recorded", session_id=session_id, answered=answered, total=len(questions))
            return {"next_question": questions[answered], "is_completed": False}

        logger.info(f"All interview questions answered", session_id=session_id, answered=answered, total=len(questions))
        return {"next_question": None, "is_completed": True}

    def get_session_state(self, user_id: int, session_id: int) -> dict:
        session = get_owned_session(self.db, session_id, user_id)
        questions = list_questions(self.db, session.optimization_id)
        progress = answered_count(self.db, session_id)
        return {
            "session": session,
            "current_question": questions[progress] if progress < len(questions) else None,
            "progress": progress,
            "total": len(questions),
        }

    def end_session(self, user_id: int, session_id: int) -> InterviewSession:
        """
        Force-complete a session and queue it for evaluation.

        No status guard: ending an already completed session stamps a fresh
        end_time and queues another evaluation.
        """
        session = get_owned_session(self.db, session_id, user_id)
        session.status = InterviewStatus.COMPLETED
        session.end_time = utc_now()
        self.db.commit()
        self.db.refresh(session)

        logger.info(f"Interview session completed", session_id=session_id)
        try:
            self.evaluation_task.delay(session_id)
        except Exception as e:
            logger.error(f"Failed to queue evaluation", session_id=session_id, error=str(e))
            raise UpstreamError("Session completed but evaluation could not be queued")
        logger.info(f"Session queued for evaluation", session_id=session_id)
        return session

    def handle_message(self, user_id: int, session_id: int, content: str, audio_url: str = None) -> InterviewMessage:
        """
        Free-form chat turn: the candidate's message is answered by the AI
        interviewer, with the whole transcript as history.

        Raises:
            UpstreamError: the interviewer reply could not be generated
        """
        session = self._get_active_session(session_id, user_id)
        history = [
            {"role": "user" if m.role == MessageRole.USER else "assistant", "content": m.content}
            for m in session.messages
        ]
        self._append_user_message(session, content, audio_url)

        try:
            reply = self.ai_agent.chat_with_interviewer(self._chat_context(session), content, history)
        except Exception as e:
            logger.error(f"Interviewer chat failed", session_id=session_id, error=str(e))
            raise UpstreamError("Failed to generate interviewer response")

        message = InterviewMessage(
            session_id=session_id,
            role=MessageRole.ASSISTANT,
            content=reply["content"],
            audio_url=reply.get("audio_url"),
            created_at=utc_now(),
        )
        self.db.add(message)
        self.db.commit()
        self.db.refresh(message)
        return message

    def get_session(self, user_id: int, session_id: int) -> InterviewSession:
        return get_owned_session(self.db, session_id, user_id)

    def get_active_session(self, user_id: int, optimization_id: int) -> Optional[InterviewSession]:
        get_owned_optimization(self.db, optimization_id, user_id)
        return (
            self.db.query(InterviewSession)
            .filter(
                InterviewSession.user_id == user_id,
                InterviewSession.optimization_id == optimization_id,
                InterviewSession.status == InterviewStatus.IN_PROGRESS,
            )
            .order_by(InterviewSession.start_time.desc(), InterviewSession.session_id.desc())
            .first()
        )

    def _get_active_session(self, session_id: int, user_id: int) -> InterviewSession:
        session = get_owned_session(self.db, session_id, user_id)
        if session.status != InterviewStatus.IN_PROGRESS:
            raise ForbiddenError("Interview session is not in progress")
        return session

    def _append_user_message(self, session: InterviewSession, content: str, audio_url: str = None) -> InterviewMessage:
        """
        Append a USER message claiming the next answer slot.

        The unique (session_id, answer_index) constraint makes the count and the
        insert behave as one compare-and-set; a loser recounts and tries again.
        """
        session_id = session.session_id
        for attempt in range(1, MAX_ANSWER_ATTEMPTS + 1):
            message = InterviewMessage(
                session_id=session_id,
                role=MessageRole.USER,
                content=content,
                audio_url=audio_url,
                answer_index=answered_count(self.db, session_id),
                created_at=utc_now(),
            )
            self.db.add(message)
            try:
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                logger.warning(f"Concurrent answer detected, retrying", session_id=session_id, attempt=attempt)
                continue
            self.db.refresh(message)
            return message

        raise AppError("Could not record answer, please retry", code="CONFLICT", status_code=409)

    def _chat_context(self, session: InterviewSession) -> str:
        resume_data, job_data = optimization_profile(session.optimization)
        requirements = requirements_text(job_data, CHAT_REQUIREMENTS_LIMIT) or "Not specified"
        return (
            f"Candidate: {candidate_name(resume_data)}\n"
            f"Position: {job_data.get('title') or 'Unknown Role'}\n"
            f"Company: {job_data.get('company') or 'Unknown Company'}\n"
            f"Key requirements: {requirements}"
        )
