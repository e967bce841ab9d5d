from fastapi import APIRouter, Depends, HTTPException, status, UploadFile, File, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from ..core.database import get_db
from ..core.exceptions import AppError, ValidationError
from ..schemas.interview import (
	QuestionResponse, SessionResponse, MessageResponse, StartSessionRequest, StartSessionResponse, AnswerRequest,
	AnswerResponse, SessionStateResponse, PreparationGuideRequest, PreparationGuideResponse, TranscribeResponse,
	ExportResponse
)
from ..schemas.report import InterviewReportResponse
from ..middleware.auth_middleware import get_current_user
from ..middleware.rate_limit import rate_limit
from ..utils.ai_agent import AiAgent
from ..utils.evaluation import get_evaluation_task
from ..utils.file_helpers import audio_extension
from ..utils.interview_session import InterviewSessionService
from ..utils.logger import logger
from ..utils.preparation_guide import PreparationGuideService
from ..utils.question_generator import QuestionGenerator, DEFAULT_QUESTION_COUNT
from ..utils.report_generator import InterviewReportService
from ..utils.voice_service import VoiceService

router = APIRouter()


def _session_service(db: Session, evaluation_task) -> InterviewSessionService:
	return InterviewSessionService(db, ai_agent=AiAgent(), evaluation_task=evaluation_task)


@router.post("/interview/questions", response_model=List[QuestionResponse], status_code=status.HTTP_200_OK,
			 dependencies=[Depends(rate_limit("generate_questions", 6))])
async def generate_questions(
	optimization_id: int = Query(...),
	count: int = Query(DEFAULT_QUESTION_COUNT),
	db: Session = Depends(get_db),
	user_id: int = Depends(get_current_user)
):
	"""
	Generate the interview question bank for an optimization.  The AI writes the questions when it can,
	otherwise the rule-based templates fill the set.  The count is clamped to 10-15.

	:param optimization_id: résumé x job pairing
	:param count: number of questions wanted
	:param db:
	:param user_id:
	:return: [ { question_id, question_type, question, suggested_answer, tips, difficulty, ... } ]
	"""
	logger.debug(f"Starting /v1/interview/questions endpoint", optimization_id=optimization_id, count=count)
	generator = QuestionGenerator(db, AiAgent())
	return generator.generate_questions(optimization_id, user_id, count)


@router.get("/interview/questions/{optimization_id}", response_model=List[QuestionResponse], status_code=status.HTTP_200_OK)
async def get_questions(
	optimization_id: int,
	db: Session = Depends(get_db),
	user_id: int = Depends(get_current_user)
):
	generator = QuestionGenerator(db, AiAgent())
	return generator.get_questions(optimization_id, user_id)


@router.get("/interview/export/{optimization_id}", response_model=ExportResponse, status_code=status.HTTP_200_OK)
async def export_interview_prep(
	optimization_id: int,
	db: Session = Depends(get_db),
	user_id: int = Depends(get_current_user)
):
	"""
	Export the question bank as a printable HTML page.

	:param optimization_id:
	:return: { html }
	"""
	logger.debug(f"Starting /v1/interview/export endpoint", optimization_id=optimization_id)
	generator = QuestionGenerator(db, AiAgent())
	return {"html": generator.export_html(optimization_id, user_id)}


@router.post("/interview/session", response_model=StartSessionResponse, status_code=status.HTTP_200_OK,
			 dependencies=[Depends(rate_limit("start_session", 12))])
async def start_session(
	request: StartSessionRequest,
	db: Session = Depends(get_db),
	user_id: int = Depends(get_current_user),
	evaluation_task=Depends(get_evaluation_task)
):
	"""
	Start a mock interview for an optimization.

	:param request: {optimization_id: int, voice_id: Optional[int]}
	:return: { session, first_question }
	"""
	logger.debug(f"Starting /v1/interview/session endpoint", optimization_id=request.optimization_id, voice_id=request.voice_id)
	service = _session_service(db, evaluation_task)
	return service.start_session(user_id, request.optimization_id, request.voice_id)


@router.get("/interview/active-session/{optimization_id}", response_model=Optional[SessionResponse], status_code=status.HTTP_200_OK)
async def get_active_session(
	optimization_id: int,
	db: Session = Depends(get_db),
	user_id: int = Depends(get_current_user),
	evaluation_task=Depends(get_evaluation_task)
):
	return _session_service(db, evaluation_task).get_active_session(user_id, optimization_id)


@router.get("/interview/session/{session_id}", response_model=SessionResponse, status_code=status.HTTP_200_OK)
async def get_session(
	session_id: int,
	db: Session = Depends(get_db),
	user_id: int = Depends(get_current_user),
	evaluation_task=Depends(get_evaluation_task)
):
	return _session_service(db, evaluation_task).get_session(user_id, session_id)


@router.post("/interview/session/{session_id}/answer", response_model=AnswerResponse, status_code=status.HTTP_200_OK,
			 dependencies=[Depends(rate_limit("submit_answer", 20))])
async def submit_answer(
	session_id: int,
	request: AnswerRequest,
	db: Session = Depends(get_db),
	user_id: int = Depends(get_current_user),
	evaluation_task=Depends(get_evaluation_task)
):
	"""
	Record the answer to the current question and return the next one.  When the last question has been
	answered is_completed is true; the session still has to be ended explicitly.

	:param session_id:
	:param request: {content: str, audio_url: Optional[str]}
	:return: { next_question, is_completed }
	"""
	service = _session_service(db, evaluation_task)
	return service.submit_answer(user_id, session_id, request.content, request.audio_url)


@router.post("/interview/session/{session_id}/message", response_model=MessageResponse, status_code=status.HTTP_200_OK,
			 dependencies=[Depends(rate_limit("submit_answer", 20))])
async def send_message(
	session_id: int,
	request: AnswerRequest,
	db: Session = Depends(get_db),
	user_id: int = Depends(get_current_user),
	evaluation_task=Depends(get_evaluation_task)
):
	"""
	Chat mode: send a free-form message and get the interviewer's reply.
	"""
	service = _session_service(db, evaluation_task)
	return service.handle_message(user_id, session_id, request.content, request.audio_url)


@router.get("/interview/session/{session_id}/current", response_model=SessionStateResponse, status_code=status.HTTP_200_OK)
async def get_session_state(
	session_id: int,
	db: Session = Depends(get_db),
	user_id: int = Depends(get_current_user),
	evaluation_task=Depends(get_evaluation_task)
):
	return _session_service(db, evaluation_task).get_session_state(user_id, session_id)


@router.post("/interview/session/{session_id}/end", response_model=SessionResponse, status_code=status.HTTP_200_OK)
async def end_session(
	session_id: int,
	db: Session = Depends(get_db),
	user_id: int = Depends(get_current_user),
	evaluation_task=Depends(get_evaluation_task)
):
	"""
	Complete the session and queue it for evaluation.  Returns immediately; score and feedback appear on the
	session once the background evaluation has run.
	"""
	logger.debug(f"Starting /v1/interview/session/end endpoint", session_id=session_id)
	return _session_service(db, evaluation_task).end_session(user_id, session_id)


@router.get("/interview/session/{session_id}/report", response_model=InterviewReportResponse, status_code=status.HTTP_200_OK,
			dependencies=[Depends(rate_limit("generate_report", 5))])
async def get_report(
	session_id: int,
	db: Session = Depends(get_db),
	user_id: int = Depends(get_current_user)
):
	"""
	Build the full interview report: six scored dimensions, per-question breakdown and a Markdown rendering.

	:param session_id: a completed session
	:return: InterviewReport
	"""
	logger.debug(f"Starting /v1/interview/session/report endpoint", session_id=session_id)
	service = InterviewReportService(db, AiAgent())
	return service.generate_report(session_id, user_id)


@router.post("/interview/preparation-guide", response_model=PreparationGuideResponse, status_code=status.HTTP_200_OK,
			 dependencies=[Depends(rate_limit("preparation_guide", 8))])
async def preparation_guide(
	request: PreparationGuideRequest,
	db: Session = Depends(get_db),
	user_id: int = Depends(get_current_user)
):
	service = PreparationGuideService(db, AiAgent())
	content = service.generate_guide(request.optimization_id, user_id, request.focus)
	return {"content": content}


@router.post("/interview/audio/transcribe", response_model=TranscribeResponse, status_code=status.HTTP_200_OK,
			 dependencies=[Depends(rate_limit("transcribe_audio", 8))])
async def transcribe_audio(
	file: UploadFile = File(...),
	db: Session = Depends(get_db),
	user_id: int = Depends(get_current_user)
):
	"""
	This endpoint will take the attached audio file and transcribe it into text

	:param file: recorded audio (webm, mp3, wav, ...)
	:return: {text: str}
	"""
	try:
		buffer = await file.read()
		if not buffer:
			raise ValidationError("Uploaded audio file is empty")

		filename = file.filename or "recording.webm"
		logger.debug(f"Starting /v1/interview/audio/transcribe", filename=filename, mimetype=file.content_type, size=len(buffer))

		voice_service = VoiceService(db, AiAgent())
		text = voice_service.transcribe_audio(
			buffer,
			filename=f"recording.{audio_extension(filename)}",
			content_type=file.content_type or "audio/webm"
		)

		logger.debug(f"Finished /v1/interview/audio/transcribe", text_length=len(text))
		return {"text": text}

	except AppError:
		raise
	except Exception as e:
		logger.error(f"Failed to transcribe audio", user_id=user_id, error=str(e))
		raise HTTPException(status_code=500, detail=f"Error transcribing audio: {str(e)}")
