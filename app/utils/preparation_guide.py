from sqlalchemy.orm import Session

from .ai_agent import AiAgent
from .logger import logger
from .profile_data import job_required_skills, job_responsibilities, requirements_text, resume_summary
from .question_generator import get_owned_optimization, optimization_profile


GUIDE_REQUIREMENTS_LIMIT = 800


def fallback_guide(job_data: dict, focus: str = None) -> str:
    """Static guide built from the job data alone."""
    title = job_data.get("title") or "the role"
    company = job_data.get("company") or "the company"
    skills = job_required_skills(job_data)[:5]
    responsibilities = job_responsibilities(job_data)[:5]

    lines = [f"# Interview Preparation: {title} at {company}", ""]
    if focus:
        lines += [f"_Focus: {focus}_", ""]

    lines += ["## Research", "", f"- Read up on {company}: products, customers and recent news",
              f"- Be ready to explain why you want to work as {title}", ""]

    if skills:
        lines += ["## Skills to review", ""]
        lines += [f"- {skill}: prepare one concrete project where you used it" for skill in skills]
        lines.append("")

    if responsibilities:
        lines += ["## Responsibilities to map to your experience", ""]
        lines += [f"- {item}" for item in responsibilities]
        lines.append("")

    lines += ["## Practice", "", "- Prepare three STAR stories: a success, a conflict and a failure",
              "- Rehearse a two-minute walkthrough of your résumé",
              "- Prepare two or three questions to ask the interviewer", ""]
    return "\n".join(lines)


class PreparationGuideService:

    def __init__(self, db: Session, ai_agent: AiAgent = None):
        self.db = db
        self.ai_agent = ai_agent or AiAgent()

    def generate_guide(self, optimization_id: int, user_id: int, focus: str = None) -> str:
        """
        Markdown study guide for an optimization; falls back to a static guide
        when the AI call fails or returns nothing.
        """
        optimization = get_owned_optimization(self.db, optimization_id, user_id)
        resume_data, job_data = optimization_profile(optimization)

        try:
            content = self.ai_agent.preparation_guide(
                job_title=job_data.get("title") or "Unknown Role",
                company=job_data.get("company") or "Unknown Company",
                requirements=requirements_text(job_data, GUIDE_REQUIREMENTS_LIMIT),
                resume_summary=resume_summary(resume_data),
                focus=focus
            )
            if content:
                return content
            logger.warning(f"Empty preparation guide from AI, using fallback", optimization_id=optimization_id)
        except Exception as e:
            logger.error(f"Preparation guide generation failed, using fallback", optimization_id=optimization_id, error=str(e))

        return fallback_guide(job_data, focus)
