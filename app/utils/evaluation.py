from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.celery_app import celery_app
from ..core.database import SessionLocal
from ..models.models import InterviewSession, InterviewMessage, InterviewStatus
from .ai_agent import AiAgent
from .ai_parsing import ParseResult, parse_evaluation
from .logger import logger
from .profile_data import candidate_name, requirements_text
from .question_generator import optimization_profile


REQUIREMENTS_PROMPT_LIMIT = 500


def format_transcript(messages: List[InterviewMessage]) -> str:
    return "\n".join(f"{m.role.value}: {m.content}" for m in messages)


def evaluate_session(db: Session, session_id: int, ai_agent: AiAgent = None) -> Optional[ParseResult]:
    """
    Score a completed interview from its transcript and store score/feedback.

    A malformed AI answer falls back to a fixed score with the raw text as
    feedback. Exceptions from the AI call propagate so the task can retry.

    :param db: database session
    :param session_id: session to evaluate
    :param ai_agent: AI facade, built from settings when omitted
    :return: the parse outcome, or None when the session no longer exists
    """
    session = db.get(InterviewSession, session_id)
    if not session:
        logger.error(f"Session not found for evaluation", session_id=session_id)
        return None

    ai_agent = ai_agent or AiAgent()
    resume_data, job_data = optimization_profile(session.optimization)

    prompt = ai_agent.render_prompt(
        'interview_evaluation',
        job_title=job_data.get("title") or "Unknown Role",
        company=job_data.get("company") or "Unknown Company",
        requirements=requirements_text(job_data, REQUIREMENTS_PROMPT_LIMIT),
        candidate_name=candidate_name(resume_data),
        transcript=format_transcript(session.messages)
    )

    logger.info(f"Evaluating interview session", session_id=session_id, message_count=len(session.messages))
    raw = ai_agent.generate(prompt, temperature=0.7, max_tokens=2000, model=settings.evaluation_llm)

    result = parse_evaluation(raw)
    if not result.ok:
        logger.warning(f"Evaluation response not parseable, using fallback score", session_id=session_id, error=result.error)

    session.score = result.value["score"]
    session.feedback = result.value["feedback"]
    session.status = InterviewStatus.EVALUATED
    db.commit()

    logger.info(f"Session evaluated", session_id=session_id, score=session.score, source=result.status.value)
    return result


@celery_app.task(
    bind=True,
    name="intervai.evaluate_session",
    max_retries=settings.evaluation_max_attempts - 1,
    default_retry_delay=settings.evaluation_retry_backoff,
    rate_limit=f"{settings.evaluation_rate_limit_max}/m",
    ignore_result=True,
)
def run_evaluation_job(self, session_id: int) -> None:
    """
    Background evaluation of an ended session, with a dedicated database session.

    A failed attempt is retried with linear backoff; once the attempts are used
    up the failure is logged and the session keeps a null score.
    """
    # DO NOT share a request-scoped session with the worker
    db = SessionLocal()
    attempt = self.request.retries + 1
    try:
        logger.info(f"Processing evaluation", session_id=session_id, attempt=attempt)
        evaluate_session(db, session_id)
    except Exception as e:
        db.rollback()
        if self.request.retries >= self.max_retries:
            logger.error(f"Evaluation failed, giving up", session_id=session_id, attempts=attempt, error=str(e))
            return
        logger.warning(f"Evaluation failed, scheduling retry", session_id=session_id, attempt=attempt, error=str(e))
        raise self.retry(exc=e, countdown=settings.evaluation_retry_backoff * attempt)
    finally:
        db.close()


def get_evaluation_task():
    """
    FastAPI dependency handing out the evaluation task; tests swap it for a mock.
    """
    return run_evaluation_job
