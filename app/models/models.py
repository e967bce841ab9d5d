import enum

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON, Enum, UniqueConstraint
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..utils.time_helpers import utc_now


class InterviewStatus(str, enum.Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    EVALUATED = "EVALUATED"


class MessageRole(str, enum.Enum):
    USER = "USER"
    ASSISTANT = "ASSISTANT"


class QuestionType(str, enum.Enum):
    BEHAVIORAL = "BEHAVIORAL"
    TECHNICAL = "TECHNICAL"
    SITUATIONAL = "SITUATIONAL"
    RESUME_BASED = "RESUME_BASED"


class Difficulty(str, enum.Enum):
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"


class VoiceType(str, enum.Enum):
    DEFAULT = "DEFAULT"
    CLONED = "CLONED"


class Resume(Base):
    __tablename__ = "resume"

    resume_id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    resume_title = Column(String(255))
    parsed_data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, nullable=False, default=utc_now)


class Job(Base):
    __tablename__ = "job"

    job_id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    title = Column(String(255))
    company = Column(String(255))
    parsed_requirements = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, nullable=False, default=utc_now)


class Optimization(Base):
    """A résumé paired with a target job."""
    __tablename__ = "optimization"

    optimization_id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    resume_id = Column(Integer, ForeignKey("resume.resume_id"), nullable=False)
    job_id = Column(Integer, ForeignKey("job.job_id"), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utc_now)

    resume = relationship("Resume")
    job = relationship("Job")


class InterviewQuestion(Base):
    __tablename__ = "interview_question"

    question_id = Column(Integer, primary_key=True, autoincrement=True)
    optimization_id = Column(Integer, ForeignKey("optimization.optimization_id"), nullable=False, index=True)
    question_type = Column(Enum(QuestionType), nullable=False)
    question = Column(Text, nullable=False)
    suggested_answer = Column(Text, nullable=False)
    tips = Column(JSON, nullable=False, default=list)
    difficulty = Column(Enum(Difficulty), nullable=False, default=Difficulty.MEDIUM)
    # generation order inside one batch
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utc_now)


class Voice(Base):
    __tablename__ = "voice"

    voice_id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=True, index=True)
    name = Column(String(100), nullable=False)
    voice_code = Column(String(100), nullable=False)
    voice_type = Column(Enum(VoiceType), nullable=False, default=VoiceType.DEFAULT)
    style = Column(String(50))
    created_at = Column(DateTime, nullable=False, default=utc_now)


class InterviewSession(Base):
    __tablename__ = "interview_session"

    session_id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    optimization_id = Column(Integer, ForeignKey("optimization.optimization_id"), nullable=False, index=True)
    voice_id = Column(Integer, ForeignKey("voice.voice_id"), nullable=True)
    status = Column(Enum(InterviewStatus), nullable=False, default=InterviewStatus.IN_PROGRESS)
    score = Column(Integer, nullable=True)
    feedback = Column(Text, nullable=True)
    start_time = Column(DateTime, nullable=False, default=utc_now)
    end_time = Column(DateTime, nullable=True)

    optimization = relationship("Optimization")
    messages = relationship(
        "InterviewMessage",
        back_populates="session",
        order_by=lambda: [InterviewMessage.created_at, InterviewMessage.message_id],
    )


class InterviewMessage(Base):
    __tablename__ = "interview_message"
    __table_args__ = (
        # two answers can never claim the same slot in the question sequence
        UniqueConstraint("session_id", "answer_index", name="uq_interview_message_answer_index"),
    )

    message_id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(Integer, ForeignKey("interview_session.session_id"), nullable=False, index=True)
    role = Column(Enum(MessageRole), nullable=False)
    content = Column(Text, nullable=False)
    audio_url = Column(String(500), nullable=True)
    answer_index = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)

    session = relationship("InterviewSession", back_populates="messages")


class InterviewUsage(Base):
    """Interviews started per user per calendar month."""
    __tablename__ = "interview_usage"
    __table_args__ = (
        UniqueConstraint("user_id", "period", name="uq_interview_usage_user_period"),
    )

    usage_id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    period = Column(String(7), nullable=False)
    interview_count = Column(Integer, nullable=False, default=0)
