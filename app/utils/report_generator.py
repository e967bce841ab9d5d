"""
On-demand interview report: a six-dimension AI analysis of a completed
session, normalized and rendered to Markdown.
"""

from typing import List

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import ForbiddenError
from ..models.models import InterviewStatus, MessageRole, InterviewQuestion, InterviewMessage
from .ai_agent import AiAgent
from .ai_parsing import normalize_score, parse_json_object
from .evaluation import format_transcript
from .interview_session import get_owned_session
from .logger import logger
from .profile_data import candidate_name, candidate_email, requirements_text
from .question_generator import list_questions, optimization_profile
from .time_helpers import utc_now


# applied only when the model leaves out overallScore
DIMENSION_WEIGHTS = {
    "accuracy": 0.25,
    "fluency": 0.15,
    "logical_thinking": 0.20,
    "professional_knowledge": 0.25,
    "communication": 0.10,
    "confidence": 0.05,
}

# report key -> key in the model's JSON
DIMENSION_SOURCE_KEYS = {
    "accuracy": "accuracy",
    "fluency": "fluency",
    "logical_thinking": "logicalThinking",
    "professional_knowledge": "professionalKnowledge",
    "communication": "communication",
    "confidence": "confidence",
}

DIMENSION_LABELS = {
    "accuracy": "Answer accuracy",
    "fluency": "Fluency",
    "logical_thinking": "Logical thinking",
    "professional_knowledge": "Professional knowledge",
    "communication": "Communication",
    "confidence": "Confidence",
}

DEFAULT_ANALYSIS_SCORE = 65
MAX_LIST_ITEMS = 5
REPORT_REQUIREMENTS_LIMIT = 800
ANSWER_SUMMARY_LIMIT = 200


def score_emoji(score: int) -> str:
    if score >= 80:
        return "🟢"
    if score >= 60:
        return "🟡"
    return "🔴"


def score_level(score: int) -> str:
    if score >= 90:
        return "Excellent"
    if score >= 80:
        return "Good"
    if score >= 70:
        return "Fair"
    if score >= 60:
        return "Pass"
    return "Needs Improvement"


def weighted_score(dimensions: dict) -> int:
    return int(round(sum(dimensions[key] * weight for key, weight in DIMENSION_WEIGHTS.items())))


def _string_list(value, default: List[str]) -> List[str]:
    if not isinstance(value, list):
        return list(default)
    return [str(item) for item in value if item not in (None, "")][:MAX_LIST_ITEMS]


def normalize_analysis(parsed: dict, questions: List[InterviewQuestion], user_messages: List[InterviewMessage]) -> dict:
    """
    Coerce the model's analysis into the report shape.

    Scores are clamped to [0, 100] with 50 for anything missing; per-question
    entries are paired positionally with the candidate's answers.
    """
    raw_dimensions = parsed.get("dimensions") if isinstance(parsed.get("dimensions"), dict) else {}
    dimensions = {
        key: normalize_score(raw_dimensions.get(source))
        for key, source in DIMENSION_SOURCE_KEYS.items()
    }

    overall = normalize_score(parsed.get("overallScore"), default=None)
    if overall is None:
        overall = weighted_score(dimensions)

    raw_details = parsed.get("detailedAnalysis") if isinstance(parsed.get("detailedAnalysis"), list) else []
    detailed = []
    for index, item in enumerate(raw_details[:len(user_messages)]):
        item = item if isinstance(item, dict) else {}
        question = questions[index].question if index < len(questions) else item.get("question")
        detailed.append({
            "question_id": f"Q{index + 1}",
            "question": question or "Unknown question",
            "answer": item.get("answer") or user_messages[index].content[:ANSWER_SUMMARY_LIMIT],
            "score": normalize_score(item.get("score")),
            "feedback": item.get("feedback") or "No detailed feedback available",
            "keywords": _string_list(item.get("keywords"), []),
            "suggestions": _string_list(item.get("suggestions"), []),
        })

    return {
        "overall_score": overall,
        "dimensions": dimensions,
        "strengths": _string_list(parsed.get("strengths"), ["Steady performance", "Serious attitude"]),
        "improvements": _string_list(parsed.get("improvements"), ["More practice needed", "Go deeper in answers"]),
        "detailed_analysis": detailed,
        "recommendations": _string_list(parsed.get("recommendations"), ["Keep strengthening your domain knowledge"]),
        "next_steps": _string_list(parsed.get("nextSteps"), ["Schedule more mock interviews"]),
    }


def default_analysis(questions: List[InterviewQuestion], user_messages: List[InterviewMessage]) -> dict:
    detailed = [
        {
            "question_id": f"Q{index + 1}",
            "question": questions[index].question,
            "answer": message.content[:ANSWER_SUMMARY_LIMIT],
            "score": DEFAULT_ANALYSIS_SCORE,
            "feedback": "A more detailed analysis is not available",
            "keywords": [],
            "suggestions": ["Give a more complete answer"],
        }
        for index, message in enumerate(user_messages[:len(questions)])
    ]
    return {
        "overall_score": DEFAULT_ANALYSIS_SCORE,
        "dimensions": {key: DEFAULT_ANALYSIS_SCORE for key in DIMENSION_WEIGHTS},
        "strengths": ["Completed the interview", "Serious attitude"],
        "improvements": ["More practice needed", "Answer questions in more depth"],
        "detailed_analysis": detailed,
        "recommendations": ["Do more mock interview practice"],
        "next_steps": ["Keep strengthening your domain knowledge", "Work on how you express yourself"],
    }


def render_markdown(report: dict) -> str:
    analysis = report["analysis"]
    candidate = report["candidate_info"]
    job = report["job_info"]

    lines = [
        "# Mock Interview Report",
        "",
        "## Overview",
        "",
        "| Item | Value |",
        "|------|-------|",
        f"| **Candidate** | {candidate['name']} |",
        f"| **Email** | {candidate.get('email') or 'Not provided'} |",
        f"| **Position** | {job['title']} |",
        f"| **Company** | {job['company']} |",
        f"| **Duration** | {report['interview_duration']} min |",
        f"| **Questions** | {report['answered_questions']}/{report['total_questions']} |",
        f"| **Generated** | {report['generated_at'].strftime('%Y-%m-%d %H:%M')} UTC |",
        "",
        "---",
        "",
        "## Overall Score",
        "",
        f"### Total: {analysis['overall_score']} ({score_level(analysis['overall_score'])})",
        "",
        "### Dimensions",
        "",
        "| Dimension | Score | Level |",
        "|-----------|-------|-------|",
    ]
    for key, value in analysis["dimensions"].items():
        lines.append(f"| {DIMENSION_LABELS.get(key, key)} | {score_emoji(value)} {value} | {score_level(value)} |")

    lines += ["", "---", "", "## Transcript", ""]
    for entry in report["transcript"]:
        lines += [f"**[{entry['timestamp'].strftime('%H:%M:%S')}] {entry['role']}**:", "", entry["content"], "", "---", ""]

    lines += ["## Answer Breakdown", ""]
    for index, item in enumerate(analysis["detailed_analysis"]):
        lines += [
            f"### Question {index + 1}: {item['question']}",
            "",
            f"**Answer summary**: {item['answer'] or '(no answer)'}",
            "",
            f"**Score**: {score_emoji(item['score'])} {item['score']}",
            "",
            f"**Feedback**: {item['feedback']}",
            "",
        ]
        if item["keywords"]:
            lines += ["**Keywords**: " + " ".join(f"`{k}`" for k in item["keywords"]), ""]
        if item["suggestions"]:
            lines += ["**Suggestions**:"] + [f"- {s}" for s in item["suggestions"]] + [""]
        lines += ["---", ""]

    lines += ["## Performance", "", "### Strengths", ""]
    lines += [f"- ✅ {s}" for s in analysis["strengths"]]
    lines += ["", "### Areas to Improve", ""]
    lines += [f"- ⚠️ {s}" for s in analysis["improvements"]]
    lines += ["", "---", "", "## Recommendations", ""]
    lines += [f"- 💡 {s}" for s in analysis["recommendations"]]
    lines += ["", "---", "", "## Next Steps", ""]
    lines += [f"- 🎯 {s}" for s in analysis["next_steps"]]
    lines += [
        "",
        "---",
        "",
        "## Scoring Guide",
        "",
        "- 🟢 **80-100**: Excellent/Good - strong performance, keep it up",
        "- 🟡 **60-79**: Fair/Pass - solid base, needs reinforcement",
        "- 🔴 **below 60**: Needs Improvement - focus your practice here",
        "",
        "---",
        "",
        "*This report was generated automatically by IntervAI and is for reference only.*",
        "",
    ]
    return "\n".join(lines)


class InterviewReportService:

    def __init__(self, db: Session, ai_agent: AiAgent = None):
        self.db = db
        self.ai_agent = ai_agent or AiAgent()

    def generate_report(self, session_id: int, user_id: int) -> dict:
        """
        Build the full report for a completed interview.

        The AI analysis degrades to a fixed default analysis rather than
        failing the request.

        Raises:
            NotFoundError: no such session
            ForbiddenError: not the owner, or the session is still in progress
        """
        session = get_owned_session(self.db, session_id, user_id)
        if session.status not in (InterviewStatus.COMPLETED, InterviewStatus.EVALUATED):
            raise ForbiddenError("Interview session must be completed before generating report")

        resume_data, job_data = optimization_profile(session.optimization)
        questions = list_questions(self.db, session.optimization_id)
        messages = list(session.messages)
        user_messages = [m for m in messages if m.role == MessageRole.USER]

        analysis = self._analyze(session_id, messages, user_messages, questions, resume_data, job_data)

        end_time = session.end_time or utc_now()
        report = {
            "session_id": session.session_id,
            "generated_at": utc_now(),
            "candidate_info": {
                "name": candidate_name(resume_data, default="Unknown Candidate"),
                "email": candidate_email(resume_data),
            },
            "job_info": {
                "title": job_data.get("title") or "Unknown Role",
                "company": job_data.get("company") or "Unknown Company",
            },
            "interview_duration": int(round((end_time - session.start_time).total_seconds() / 60)),
            "total_questions": len(questions),
            "answered_questions": len(user_messages),
            "transcript": [
                {
                    "role": "Candidate" if m.role == MessageRole.USER else "Interviewer",
                    "content": m.content,
                    "timestamp": m.created_at,
                }
                for m in messages
            ],
            "analysis": analysis,
        }
        report["markdown"] = render_markdown(report)

        logger.info(f"Interview report generated", session_id=session_id, overall_score=analysis["overall_score"])
        return report

    def _analyze(self, session_id, messages, user_messages, questions, resume_data, job_data) -> dict:
        prompt = self.ai_agent.render_prompt(
            'interview_report',
            job_title=job_data.get("title") or "Unknown Role",
            company=job_data.get("company") or "Unknown Company",
            candidate_name=candidate_name(resume_data),
            requirements=requirements_text(job_data, REPORT_REQUIREMENTS_LIMIT),
            transcript=format_transcript(messages)
        )

        try:
            raw = self.ai_agent.generate(prompt, temperature=0.7, max_tokens=4000, model=settings.report_llm)
        except Exception as e:
            logger.error(f"Error analyzing interview, using default analysis", session_id=session_id, error=str(e))
            return default_analysis(questions, user_messages)

        parsed = parse_json_object(raw)
        if not parsed.ok:
            logger.warning(f"Report analysis not parseable, using default analysis", session_id=session_id, error=parsed.error)
            return default_analysis(questions, user_messages)

        return normalize_analysis(parsed.value, questions, user_messages)
