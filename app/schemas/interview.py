from datetime import datetime
from pydantic import BaseModel, field_validator
from typing import Optional, List

from ..models.models import InterviewStatus, MessageRole, QuestionType, Difficulty, VoiceType


class QuestionResponse(BaseModel):
    question_id: int
    optimization_id: int
    question_type: QuestionType
    question: str
    suggested_answer: str
    tips: List[str]
    difficulty: Difficulty
    position: int
    created_at: datetime

    class Config:
        from_attributes = True


class SessionResponse(BaseModel):
    session_id: int
    user_id: int
    optimization_id: int
    voice_id: Optional[int] = None
    status: InterviewStatus
    score: Optional[int] = None
    feedback: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None

    class Config:
        from_attributes = True


class MessageResponse(BaseModel):
    message_id: int
    session_id: int
    role: MessageRole
    content: str
    audio_url: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class StartSessionRequest(BaseModel):
    optimization_id: int
    voice_id: Optional[int] = None


class StartSessionResponse(BaseModel):
    session: SessionResponse
    first_question: Optional[QuestionResponse] = None


class AnswerRequest(BaseModel):
    content: str
    audio_url: Optional[str] = None

    @field_validator('content')
    @classmethod
    def validate_content(cls, v):
        if not v or not v.strip():
            raise ValueError('Answer content must not be empty')
        return v


class AnswerResponse(BaseModel):
    next_question: Optional[QuestionResponse] = None
    is_completed: bool


class SessionStateResponse(BaseModel):
    session: SessionResponse
    current_question: Optional[QuestionResponse] = None
    progress: int
    total: int


class PreparationGuideRequest(BaseModel):
    optimization_id: int
    focus: Optional[str] = None


class PreparationGuideResponse(BaseModel):
    content: str


class ExportResponse(BaseModel):
    html: str


class TranscribeResponse(BaseModel):
    text: str


class VoiceResponse(BaseModel):
    voice_id: int
    name: str
    voice_code: str
    voice_type: VoiceType
    style: Optional[str] = None

    class Config:
        from_attributes = True
