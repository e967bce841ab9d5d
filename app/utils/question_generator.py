import json
from html import escape
from typing import List

from sqlalchemy.orm import Session

from ..core.exceptions import NotFoundError, ForbiddenError
from ..models.models import Optimization, InterviewQuestion, QuestionType, Difficulty
from .ai_agent import AiAgent
from .ai_parsing import coerce_enum
from .logger import logger
from .question_templates import generate_rule_based_questions


MIN_QUESTIONS = 10
MAX_QUESTIONS = 15
DEFAULT_QUESTION_COUNT = 12

GENERIC_TIPS = [
    "Answer with a concrete example",
    "Keep your answer structured and concise",
    "Connect your answer to the job requirements",
]


def clamp_question_count(count: int) -> int:
    return max(MIN_QUESTIONS, min(MAX_QUESTIONS, count))


def get_owned_optimization(db: Session, optimization_id: int, user_id: int) -> Optimization:
    """
    Load an optimization and make sure it belongs to the caller.

    Raises:
        NotFoundError: no such optimization
        ForbiddenError: optimization belongs to another user
    """
    optimization = db.get(Optimization, optimization_id)
    if not optimization:
        raise NotFoundError(f"Optimization with ID {optimization_id} not found")

    if optimization.user_id != user_id:
        logger.warning(f"Optimization ownership check failed", optimization_id=optimization_id, user_id=user_id)
        raise ForbiddenError("You do not have permission to access this optimization")

    return optimization


def optimization_profile(optimization: Optimization):
    """
    Parsed résumé and job data for an optimization. Job title and company fall
    back to the job record's own columns.
    """
    resume_data = dict(optimization.resume.parsed_data or {}) if optimization.resume else {}
    job = optimization.job
    job_data = dict(job.parsed_requirements or {}) if job else {}
    if job is not None:
        if job.title and not job_data.get("title"):
            job_data["title"] = job.title
        if job.company and not job_data.get("company"):
            job_data["company"] = job.company
    return resume_data, job_data


def list_questions(db: Session, optimization_id: int) -> List[InterviewQuestion]:
    return (
        db.query(InterviewQuestion)
        .filter(InterviewQuestion.optimization_id == optimization_id)
        .order_by(InterviewQuestion.created_at, InterviewQuestion.position, InterviewQuestion.question_id)
        .all()
    )


class QuestionGenerator:
    """
    Builds the question bank for an optimization: AI generation first, the
    rule-based template library when the AI is unavailable or comes back short.
    """

    def __init__(self, db: Session, ai_agent: AiAgent = None):
        self.db = db
        self.ai_agent = ai_agent or AiAgent()

    def generate_questions(self, optimization_id: int, user_id: int, count: int = DEFAULT_QUESTION_COUNT) -> List[InterviewQuestion]:
        """
        Generate and persist interview questions.

        Calling this twice for the same optimization appends a second set.

        :param optimization_id: the résumé × job pairing
        :param user_id: caller, must own the optimization
        :param count: requested number of questions, clamped to [10, 15]
        :return: persisted questions in generation order
        """
        optimization = get_owned_optimization(self.db, optimization_id, user_id)
        question_count = clamp_question_count(count)
        resume_data, job_data = optimization_profile(optimization)

        logger.debug(f"Generating interview questions", optimization_id=optimization_id, count=question_count)

        try:
            questions = self._generate_with_ai(resume_data, job_data)
            source = "ai"

            if len(questions) < question_count:
                logger.info(f"AI question set unavailable or short, using rule-based questions",
                            optimization_id=optimization_id, ai_count=len(questions), requested=question_count)
                questions = generate_rule_based_questions(resume_data, job_data, question_count)
                source = "rules"

            saved = self._save_questions(optimization_id, questions[:question_count])
            logger.info(f"Interview questions generated", optimization_id=optimization_id, count=len(saved), source=source)
            return saved

        except Exception as e:
            self.db.rollback()
            logger.error(f"Error generating interview questions, retrying with rules", optimization_id=optimization_id, error=str(e))
            questions = generate_rule_based_questions(resume_data, job_data, question_count)
            return self._save_questions(optimization_id, questions)

    def get_questions(self, optimization_id: int, user_id: int) -> List[InterviewQuestion]:
        get_owned_optimization(self.db, optimization_id, user_id)
        return list_questions(self.db, optimization_id)

    def export_html(self, optimization_id: int, user_id: int) -> str:
        """
        Render the question bank of an optimization as a printable HTML page.

        Raises:
            NotFoundError: no such optimization, or no questions generated yet
            ForbiddenError: optimization belongs to another user
        """
        optimization = get_owned_optimization(self.db, optimization_id, user_id)
        questions = list_questions(self.db, optimization_id)
        if not questions:
            raise NotFoundError(f"No interview questions generated for optimization {optimization_id}")

        heading = "Interview Preparation"
        job = optimization.job
        if job is not None and job.title:
            heading = f"{heading}: {job.title}" + (f" at {job.company}" if job.company else "")

        sections = []
        for number, question in enumerate(questions, start=1):
            tips = "".join(f"<li>{escape(str(tip))}</li>" for tip in question.tips or [])
            sections.append(
                f'<section class="question">'
                f"<h2>{number}. {escape(question.question)}</h2>"
                f'<p class="meta">{question.question_type.value} | {question.difficulty.value}</p>'
                f"<h3>Suggested answer</h3><p>{escape(question.suggested_answer)}</p>"
                + (f"<h3>Tips</h3><ul>{tips}</ul>" if tips else "")
                + "</section>"
            )

        logger.info(f"Interview prep exported", optimization_id=optimization_id, count=len(questions))
        return (
            f'<!DOCTYPE html><html><head><meta charset="utf-8"><title>{escape(heading)}</title></head>'
            f"<body><h1>{escape(heading)}</h1>{''.join(sections)}</body></html>"
        )

    def _generate_with_ai(self, resume_data: dict, job_data: dict) -> List[dict]:
        try:
            raw_questions = self.ai_agent.generate_interview_questions(resume_data, json.dumps(job_data, ensure_ascii=False))
        except Exception as e:
            logger.warning(f"AI question generation failed", error=str(e))
            return []

        if not isinstance(raw_questions, list):
            return []

        questions = []
        defaulted = 0
        for raw in raw_questions:
            question = self._from_ai(raw)
            if question is None:
                continue
            if question.pop("used_default"):
                defaulted += 1
            questions.append(question)

        if defaulted:
            logger.debug(f"AI questions with unrecognised type or difficulty", count=defaulted)
        return questions

    def _from_ai(self, raw) -> dict:
        if not isinstance(raw, dict):
            return None

        text = raw.get("question")
        if not isinstance(text, str) or not text.strip():
            return None

        question_type = coerce_enum(raw.get("questionType") or raw.get("question_type"), QuestionType, QuestionType.BEHAVIORAL)
        difficulty = coerce_enum(raw.get("difficulty"), Difficulty, Difficulty.MEDIUM)

        suggested = raw.get("suggestedAnswer") or raw.get("suggested_answer")
        if not isinstance(suggested, str) or not suggested.strip():
            suggested = "Structure your answer around a specific example: the context, what you did, and the result."

        tips = raw.get("tips")
        tips = [str(t) for t in tips if t] if isinstance(tips, list) else []

        return {
            "question_type": question_type.value,
            "question": text.strip(),
            "suggested_answer": suggested.strip(),
            "tips": tips or list(GENERIC_TIPS),
            "difficulty": difficulty.value,
            "used_default": not (question_type.ok and difficulty.ok),
        }

    def _save_questions(self, optimization_id: int, questions: List[dict]) -> List[InterviewQuestion]:
        saved = []
        for position, question in enumerate(questions):
            record = InterviewQuestion(
                optimization_id=optimization_id,
                question_type=question["question_type"],
                question=question["question"],
                suggested_answer=question["suggested_answer"],
                tips=question["tips"],
                difficulty=question["difficulty"],
                position=position,
            )
            self.db.add(record)
            saved.append(record)

        self.db.commit()
        for record in saved:
            self.db.refresh(record)
        return saved
