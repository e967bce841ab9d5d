"""
Accessors for the parsed résumé and job JSON stored on an optimization.

The parser has written both camelCase and snake_case keys over time, so every
accessor accepts either spelling.
"""

from typing import Any, List


def get_field(data: Any, *keys: str, default: Any = None) -> Any:
    if not isinstance(data, dict):
        return default
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return default


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def resume_experience(resume_data: dict) -> List[dict]:
    return [e for e in _as_list(get_field(resume_data, "experience")) if isinstance(e, dict)]


def resume_education(resume_data: dict) -> List[dict]:
    return [e for e in _as_list(get_field(resume_data, "education")) if isinstance(e, dict)]


def resume_skills(resume_data: dict) -> List[str]:
    skills = []
    for skill in _as_list(get_field(resume_data, "skills")):
        if isinstance(skill, dict):
            skill = get_field(skill, "name", "skill")
        if skill:
            skills.append(str(skill))
    return skills


def candidate_name(resume_data: dict, default: str = "Candidate") -> str:
    personal = get_field(resume_data, "personalInfo", "personal_info", default={})
    return get_field(personal, "name", default=default)


def candidate_email(resume_data: dict):
    personal = get_field(resume_data, "personalInfo", "personal_info", default={})
    return get_field(personal, "email")


def job_required_skills(job_data: dict) -> List[str]:
    return [str(s) for s in _as_list(get_field(job_data, "requiredSkills", "required_skills")) if s]


def job_responsibilities(job_data: dict) -> List[str]:
    return [str(r) for r in _as_list(get_field(job_data, "responsibilities")) if r]


def requirements_text(job_data: dict, limit: int = None) -> str:
    text = "; ".join(job_required_skills(job_data) + job_responsibilities(job_data))
    return text[:limit] if limit else text


def resume_summary(resume_data: dict, limit: int = 800) -> str:
    parts = []
    experience = resume_experience(resume_data)
    if experience:
        parts.append("Experience: " + ", ".join(
            f"{get_field(e, 'position', default='')} at {get_field(e, 'company', default='')}".strip()
            for e in experience[:3]
        ))
    skills = resume_skills(resume_data)
    if skills:
        parts.append("Skills: " + ", ".join(skills[:10]))
    education = resume_education(resume_data)
    if education:
        first = education[0]
        parts.append(f"Education: {get_field(first, 'degree', default='')} {get_field(first, 'field', default='')}, "
                     f"{get_field(first, 'institution', default='')}".strip())
    return "\n".join(parts)[:limit]
