"""
Rule-based interview question library.

Used whenever AI generation is unavailable or comes back short. Every category
holds enough templates to fill its largest quota (15 questions split 5/5/3/2),
and templates fall back to neutral wording when the résumé or job lacks the
data they reference, so the generated set is always complete.
"""

import math
from typing import List

from ..models.models import QuestionType, Difficulty
from .profile_data import (
    get_field,
    resume_experience,
    resume_education,
    resume_skills,
    job_required_skills,
)


BEHAVIORAL_SHARE = 0.3
TECHNICAL_SHARE = 0.3
SITUATIONAL_SHARE = 0.2


def _question(question_type, question, suggested_answer, tips, difficulty) -> dict:
    return {
        "question_type": question_type,
        "question": question,
        "suggested_answer": suggested_answer,
        "tips": tips,
        "difficulty": difficulty,
    }


def star_answer(situation: str, task: str, action: str, result: str) -> str:
    return (
        "Use the STAR method to structure your answer:\n\n"
        f"**Situation:** {situation}\n\n"
        f"**Task:** {task}\n\n"
        f"**Action:** {action}\n\n"
        f"**Result:** {result}\n\n"
        "Remember to be specific with examples and quantify results when possible."
    )


def _outline(heading: str, points: List[str]) -> str:
    return heading + "\n" + "\n".join(f"- {p}" for p in points)


def category_counts(count: int) -> dict:
    """
    Split a question count across categories.

    Shares are rounded up and resume-based questions take the remainder, so
    12 questions split 4/4/3/1 and 10 split 3/3/2/2. At least one question is
    always resume-based; 11 splits 4/3/3/1.
    """
    behavioral = math.ceil(count * BEHAVIORAL_SHARE)
    technical = math.ceil(count * TECHNICAL_SHARE)
    situational = math.ceil(count * SITUATIONAL_SHARE)
    resume_based = count - behavioral - technical - situational
    if resume_based < 1:
        technical -= 1 - resume_based
        resume_based = 1
    return {
        QuestionType.BEHAVIORAL: behavioral,
        QuestionType.TECHNICAL: technical,
        QuestionType.SITUATIONAL: situational,
        QuestionType.RESUME_BASED: resume_based,
    }


def behavioral_questions(resume_data: dict, count: int) -> List[dict]:
    experience = resume_experience(resume_data)
    recent_role = get_field(experience[0], "position", default="your recent role") if experience else "your recent role"

    templates = [
        _question(
            QuestionType.BEHAVIORAL,
            f"Tell me about a time when you faced a significant challenge as {recent_role}. How did you handle it?",
            star_answer(
                "Describe a specific challenge from your experience",
                "Explain what you needed to accomplish",
                "Detail the specific actions you took to overcome the challenge",
                "Share the positive outcome and what you learned",
            ),
            [
                "Use the STAR method: Situation, Task, Action, Result",
                "Focus on your personal contribution",
                "Highlight problem-solving skills",
                "Mention measurable outcomes if possible",
            ],
            Difficulty.MEDIUM,
        ),
        _question(
            QuestionType.BEHAVIORAL,
            "Describe a time when you had to work with a difficult team member. How did you handle it?",
            star_answer(
                "Set the context of the team situation",
                "Explain the conflict or difficulty",
                "Describe how you communicated and resolved the issue",
                "Share the positive outcome and improved relationship",
            ),
            [
                "Demonstrate emotional intelligence",
                "Show respect for different perspectives",
                "Focus on collaboration and communication",
                "Avoid blaming others",
            ],
            Difficulty.MEDIUM,
        ),
        _question(
            QuestionType.BEHAVIORAL,
            "What is your greatest professional achievement? Why are you proud of it?",
            star_answer(
                "Describe the project or initiative",
                "Explain your role and responsibilities",
                "Detail the specific actions and strategies you used",
                "Highlight the impact and measurable results",
            ),
            [
                "Choose an achievement relevant to the target role",
                "Quantify the impact (percentages, numbers, etc.)",
                "Show leadership and initiative",
                "Connect it to the job requirements",
            ],
            Difficulty.MEDIUM,
        ),
        _question(
            QuestionType.BEHAVIORAL,
            "Tell me about a time when you failed or made a mistake. What did you learn from it?",
            star_answer(
                "Describe the situation and what went wrong",
                "Explain your responsibility in the failure",
                "Detail the steps you took to fix or learn from it",
                "Share how you applied the lesson to future situations",
            ),
            [
                "Be honest and take responsibility",
                "Focus on learning and growth",
                "Show how you improved",
                "Avoid making excuses",
            ],
            Difficulty.HARD,
        ),
        _question(
            QuestionType.BEHAVIORAL,
            "Tell me about a time you had to learn something new quickly to deliver on a goal.",
            star_answer(
                "Describe what was unfamiliar and why it mattered",
                "Explain the goal and the deadline you were working against",
                "Detail how you structured your learning and asked for help",
                "Share what you delivered and how the skill served you afterwards",
            ),
            [
                "Show a deliberate learning strategy",
                "Mention the resources and people you used",
                "Emphasize the delivered result",
            ],
            Difficulty.EASY,
        ),
    ]
    return templates[:count]


def technical_questions(job_data: dict, count: int) -> List[dict]:
    top_skills = job_required_skills(job_data)[:3]

    if top_skills:
        first = _question(
            QuestionType.TECHNICAL,
            f"Explain your experience with {top_skills[0]}. What projects have you used it in?",
            _outline(f"Describe your hands-on experience with {top_skills[0]}, including:", [
                "Specific projects where you used it",
                "Key features and capabilities you've worked with",
                "Challenges you've overcome",
                "Best practices you follow",
                "How it compares to alternatives",
            ]),
            [
                f"Be specific about your {top_skills[0]} experience",
                "Provide concrete examples from your projects",
                "Show depth of knowledge",
                "Discuss real-world applications",
            ],
            Difficulty.MEDIUM,
        )
    else:
        first = _question(
            QuestionType.TECHNICAL,
            "Walk me through the tools and technologies you are most proficient in. How have you applied them?",
            _outline("Cover the tools you know best:", [
                "The two or three technologies you use most",
                "A project where each made a difference",
                "How you decide which tool fits a problem",
            ]),
            [
                "Prioritize tools relevant to the role",
                "Back each claim with a project",
                "Be honest about your depth",
            ],
            Difficulty.EASY,
        )

    second_skill = top_skills[1] if len(top_skills) > 1 else None
    if second_skill:
        last = _question(
            QuestionType.TECHNICAL,
            f"How have you applied {second_skill} in a production environment? What trade-offs did you consider?",
            _outline(f"Describe a production use of {second_skill}:", [
                "The problem it solved",
                "Alternatives you evaluated",
                "Trade-offs in performance, cost and maintainability",
                "What you would do differently today",
            ]),
            [
                "Be concrete about scale and constraints",
                "Explain the reasoning behind trade-offs",
                "Mention monitoring and maintenance",
            ],
            Difficulty.HARD,
        )
    else:
        last = _question(
            QuestionType.TECHNICAL,
            "How do you ensure the quality and maintainability of your work?",
            _outline("Describe your quality practices:", [
                "Reviews and testing you rely on",
                "Documentation habits",
                "How you handle technical debt",
                "Feedback loops with your team",
            ]),
            [
                "Give concrete examples of practices",
                "Show ownership beyond delivery",
                "Mention collaboration with reviewers",
            ],
            Difficulty.MEDIUM,
        )

    templates = [
        first,
        _question(
            QuestionType.TECHNICAL,
            "How would you approach designing a solution for a complex problem in your area of expertise?",
            _outline("Outline your design approach:", [
                "Understand requirements and constraints",
                "Identify key components and their interactions",
                "Consider scalability and performance",
                "Discuss trade-offs and design decisions",
                "Explain how you would test and validate the solution",
            ]),
            [
                "Think out loud and explain your reasoning",
                "Consider multiple approaches",
                "Discuss trade-offs",
                "Show systems thinking",
            ],
            Difficulty.HARD,
        ),
        _question(
            QuestionType.TECHNICAL,
            "Describe your approach to debugging a complex technical issue.",
            _outline("Explain your debugging methodology:", [
                "Gather information about the problem",
                "Reproduce the issue consistently",
                "Form hypotheses about the root cause",
                "Test hypotheses systematically",
                "Implement and verify the fix",
                "Document the solution for future reference",
            ]),
            [
                "Show systematic problem-solving approach",
                "Mention tools and techniques you use",
                "Discuss how you stay organized",
                "Emphasize communication with team members",
            ],
            Difficulty.MEDIUM,
        ),
        _question(
            QuestionType.TECHNICAL,
            "How do you stay current with new technologies and industry trends?",
            _outline("Describe your learning strategy:", [
                "Online courses and certifications you pursue",
                "Technical blogs and publications you follow",
                "Open source projects you contribute to",
                "Communities and conferences you participate in",
                "How you apply new knowledge to your work",
            ]),
            [
                "Show genuine interest in learning",
                "Mention specific resources and communities",
                "Discuss how you balance learning with work",
                "Show initiative and self-motivation",
            ],
            Difficulty.EASY,
        ),
        last,
    ]
    return templates[:count]


def situational_questions(job_data: dict, count: int) -> List[dict]:
    job_title = get_field(job_data, "title", default="this role")
    company_name = get_field(job_data, "company", default="the company")

    templates = [
        _question(
            QuestionType.SITUATIONAL,
            f"You have a tight deadline at {company_name} and discover a critical issue that will delay the project. What do you do?",
            _outline("Your approach should include:", [
                "Immediately inform stakeholders about the issue",
                "Assess the severity and impact",
                "Propose solutions and timeline adjustments",
                "Collaborate with team to find alternatives",
                "Keep communication transparent throughout",
            ]),
            [
                "Show responsibility and transparency",
                "Demonstrate problem-solving skills",
                "Emphasize communication",
                "Focus on solutions, not excuses",
            ],
            Difficulty.MEDIUM,
        ),
        _question(
            QuestionType.SITUATIONAL,
            f"As a {job_title}, you receive conflicting priorities from two managers. How do you handle this?",
            _outline("Your approach should include:", [
                "Seek clarification on business impact and urgency",
                "Communicate with both managers about the conflict",
                "Propose a prioritization based on business value",
                "Document the decision and reasoning",
                "Adjust as needed based on feedback",
            ]),
            [
                "Show diplomatic communication skills",
                "Focus on business impact",
                "Demonstrate maturity in handling conflict",
                "Seek guidance when needed",
            ],
            Difficulty.HARD,
        ),
        _question(
            QuestionType.SITUATIONAL,
            "You disagree with your manager's technical approach. How do you handle it?",
            _outline("Your approach should include:", [
                "Understand their reasoning and perspective",
                "Prepare data and evidence for your alternative approach",
                "Request a discussion to share your concerns",
                "Listen to feedback and be open to being wrong",
                "Support the final decision once made",
            ]),
            [
                "Show respect for authority",
                "Demonstrate critical thinking",
                "Use data to support your position",
                "Show flexibility and team spirit",
            ],
            Difficulty.HARD,
        ),
    ]
    return templates[:count]


def resume_based_questions(resume_data: dict, count: int) -> List[dict]:
    templates = []

    experience = resume_experience(resume_data)
    if experience:
        most_recent = experience[0]
        position = get_field(most_recent, "position", "title", default="your most recent position")
        company = get_field(most_recent, "company", default="your last employer")
        question = f"Tell me more about your role as {position} at {company}. What were your key responsibilities?"
    else:
        question = "Tell me more about your most recent role. What were your key responsibilities?"
    templates.append(_question(
        QuestionType.RESUME_BASED,
        question,
        _outline("Provide details about your role:", [
            "Overview of the company and team",
            "Your specific responsibilities and scope",
            "Key projects you led or contributed to",
            "Technologies and tools you used",
            "Impact and achievements in the role",
        ]),
        [
            "Be specific and detailed",
            "Highlight your contributions",
            "Connect to the target role",
            "Show growth and learning",
        ],
        Difficulty.EASY,
    ))

    skills = resume_skills(resume_data)
    top_skill = skills[0] if skills else None
    templates.append(_question(
        QuestionType.RESUME_BASED,
        f"I see you have {top_skill} listed as a skill. Can you describe a project where you used it?"
        if top_skill else
        "Which skill on your resume are you most proud of? Describe a project where you used it.",
        _outline("Describe a specific project:", [
            "Context and objectives of the project",
            "Your role and responsibilities",
            f"How you applied {top_skill or 'the skill'}",
            "Challenges you faced",
            "Results and what you learned",
        ]),
        [
            "Choose a relevant and impressive project",
            "Be specific about your contribution",
            "Show technical depth",
            "Connect to the job requirements",
        ],
        Difficulty.MEDIUM,
    ))

    education = resume_education(resume_data)
    if education:
        primary = education[0]
        question = (
            f"Tell me about your {get_field(primary, 'degree', default='degree')} in "
            f"{get_field(primary, 'field', default='your field')} from "
            f"{get_field(primary, 'institution', 'school', default='your school')}. "
            "How has it prepared you for this role?"
        )
    else:
        question = "How has your education or training prepared you for this role?"
    templates.append(_question(
        QuestionType.RESUME_BASED,
        question,
        _outline("Discuss your education:", [
            "Key courses and subjects you studied",
            "Relevant projects or research",
            "How it relates to the target role",
            "Skills and knowledge you gained",
            "How you've applied it in your career",
        ]),
        [
            "Connect education to job requirements",
            "Show how you've applied learning",
            "Mention relevant coursework or projects",
            "Demonstrate continuous learning",
        ],
        Difficulty.EASY,
    ))

    templates.append(_question(
        QuestionType.RESUME_BASED,
        "Walk me through your resume. Which experience best prepares you for this role?",
        _outline("Keep the walkthrough focused:", [
            "A two-minute chronological summary",
            "The experience most relevant to this job",
            "Why you are moving toward this role now",
        ]),
        [
            "Keep it concise",
            "Tailor the story to the job description",
            "End with why this role is the next step",
        ],
        Difficulty.EASY,
    ))

    return templates[:count]


def generate_rule_based_questions(resume_data: dict, job_data: dict, count: int) -> List[dict]:
    """
    Deterministic question set in category order: behavioral, technical,
    situational, then resume-based.
    """
    counts = category_counts(count)
    questions = []
    questions.extend(behavioral_questions(resume_data, counts[QuestionType.BEHAVIORAL]))
    questions.extend(technical_questions(job_data, counts[QuestionType.TECHNICAL]))
    questions.extend(situational_questions(job_data, counts[QuestionType.SITUATIONAL]))
    questions.extend(resume_based_questions(resume_data, count - len(questions)))
    return questions[:count]
