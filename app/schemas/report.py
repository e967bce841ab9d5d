from datetime import datetime
from pydantic import BaseModel
from typing import Optional, List


class DimensionScores(BaseModel):
    accuracy: int
    fluency: int
    logical_thinking: int
    professional_knowledge: int
    communication: int
    confidence: int


class QuestionAnalysis(BaseModel):
    question_id: str
    question: str
    answer: str
    score: int
    feedback: str
    keywords: List[str] = []
    suggestions: List[str] = []


class ReportAnalysis(BaseModel):
    overall_score: int
    dimensions: DimensionScores
    strengths: List[str]
    improvements: List[str]
    detailed_analysis: List[QuestionAnalysis]
    recommendations: List[str]
    next_steps: List[str]


class CandidateInfo(BaseModel):
    name: str
    email: Optional[str] = None


class JobInfo(BaseModel):
    title: str
    company: str


class TranscriptEntry(BaseModel):
    role: str
    content: str
    timestamp: datetime


class InterviewReportResponse(BaseModel):
    session_id: int
    generated_at: datetime
    candidate_info: CandidateInfo
    job_info: JobInfo
    interview_duration: int
    total_questions: int
    answered_questions: int
    transcript: List[TranscriptEntry]
    analysis: ReportAnalysis
    markdown: str
