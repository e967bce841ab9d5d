import base64
import binascii
import json
import uuid
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from starlette.concurrency import run_in_threadpool
from sqlalchemy.orm import Session
from typing import Optional

from ..core.database import get_db
from ..core.exceptions import AppError, UpstreamError, ValidationError
from ..utils.ai_agent import AiAgent
from ..utils.connection_store import ConnectionStateStore, InMemoryConnectionStore
from ..utils.evaluation import get_evaluation_task
from ..utils.file_helpers import save_interview_audio
from ..utils.interview_session import InterviewSessionService
from ..utils.logger import logger
from ..utils.oauth_utils import verify_access_token, user_id_from_payload
from ..utils.voice_service import VoiceService

router = APIRouter()

# every Nth buffered chunk triggers a partial transcription
PARTIAL_TRANSCRIPTION_EVERY = 5

connection_store: ConnectionStateStore = InMemoryConnectionStore()


def _token_from(websocket: WebSocket) -> Optional[str]:
	token = websocket.query_params.get("token")
	if token:
		return token
	header = websocket.headers.get("authorization") or ""
	if header.lower().startswith("bearer "):
		return header[7:].strip()
	return None


def _decode_audio(value) -> bytes:
	if not value:
		return b""
	try:
		return base64.b64decode(value, validate=True)
	except (binascii.Error, TypeError, ValueError):
		raise ValidationError("Audio payload must be base64 encoded")


def _session_id(data: dict) -> int:
	try:
		return int(data.get("session_id"))
	except (TypeError, ValueError):
		raise ValidationError("session_id is required")


class InterviewGateway:
	"""
	Event handlers for one socket connection.  Business rules live in the session and voice services;
	this class only moves audio and text between them and the client.  Blocking calls (database, AI
	provider, disk) run in the threadpool so one slow answer does not stall the other sockets.
	"""

	def __init__(self, websocket: WebSocket, connection_id: str, store: ConnectionStateStore,
				 session_service: InterviewSessionService, voice_service: VoiceService):
		self.websocket = websocket
		self.connection_id = connection_id
		self.store = store
		self.session_service = session_service
		self.voice_service = voice_service

	@property
	def user_id(self) -> Optional[int]:
		return self.store.user_for(self.connection_id)

	async def emit(self, event: str, data: dict = None):
		await self.websocket.send_json({"event": event, "data": data or {}})

	async def dispatch(self, event: str, data: dict):
		handlers = {
			"join_interview": self.join_interview,
			"audio_chunk": self.audio_chunk,
			"end_audio": self.end_audio,
			"ping": self.ping,
		}
		handler = handlers.get(event)
		if handler is None:
			await self.emit("error", {"message": f"Unknown event: {event}", "code": "VALIDATION_ERROR"})
			return

		try:
			await handler(data)
		except AppError as e:
			logger.warning(f"Gateway event rejected", gateway_event=event, user_id=self.user_id, code=e.code, error=e.message)
			await self.emit("error", {"message": e.message, "code": e.code})
		except Exception as e:
			logger.error(f"Gateway event failed", gateway_event=event, user_id=self.user_id, error=str(e))
			await self.emit("error", {"message": "Internal error while processing event", "code": "INTERNAL_SERVER_ERROR"})

	async def ping(self, data: dict):
		await self.emit("pong", {})

	async def join_interview(self, data: dict):
		session_id = _session_id(data)
		await run_in_threadpool(self.session_service.get_session, self.user_id, session_id)
		self.store.join(self.connection_id, session_id)
		logger.info(f"Client joined interview", session_id=session_id, user_id=self.user_id, connection_id=self.connection_id)
		await self.emit("joined_interview", {"session_id": session_id})

	async def audio_chunk(self, data: dict):
		session_id = _session_id(data)
		if self.store.joined_session(self.connection_id) != session_id:
			return

		count = self.store.append_chunk(self.connection_id, session_id, _decode_audio(data.get("chunk")))
		if count % PARTIAL_TRANSCRIPTION_EVERY != 0:
			return

		try:
			audio = self.store.buffered_audio(self.connection_id, session_id)
			text = await run_in_threadpool(self.voice_service.transcribe_audio, audio)
			await self.emit("transcription_partial", {"text": text})
		except Exception as e:
			logger.debug(f"Partial transcription failed", session_id=session_id, error=str(e))

	async def end_audio(self, data: dict):
		session_id = _session_id(data)
		if self.store.joined_session(self.connection_id) != session_id:
			raise ValidationError("Join the interview before sending audio")

		audio = self.store.pop_audio(self.connection_id, session_id) + _decode_audio(data.get("audio"))
		if not audio:
			raise ValidationError("No audio received")

		user_id = self.user_id
		audio_url = await run_in_threadpool(save_interview_audio, user_id, session_id, audio)
		text = await run_in_threadpool(self.voice_service.transcribe_audio, audio)
		await self.emit("transcription", {"text": text})
		if not text.strip():
			raise ValidationError("No speech detected in audio")

		result = await run_in_threadpool(self.session_service.submit_answer, user_id, session_id, text, audio_url)
		next_question = result["next_question"]
		if next_question is None:
			logger.info(f"Interview questions exhausted", session_id=session_id)
			await self.emit("interview_completed", {"session_id": session_id})
			return

		await self.emit("ai_response", {"text": next_question.question, "question_id": next_question.question_id})

		try:
			speech = await run_in_threadpool(self._question_speech, user_id, session_id, next_question.question)
		except UpstreamError:
			logger.warning(f"Skipping question audio", session_id=session_id, question_id=next_question.question_id)
			return
		await self.emit("ai_audio", {"audio": base64.b64encode(speech).decode("ascii"), "question_id": next_question.question_id})

	def _question_speech(self, user_id: int, session_id: int, text: str) -> bytes:
		session = self.session_service.get_session(user_id, session_id)
		return self.voice_service.synthesize_speech(text, self.voice_service.voice_code_for(session.voice_id))


@router.websocket("/ws/interview")
async def interview_socket(
	websocket: WebSocket,
	db: Session = Depends(get_db),
	evaluation_task=Depends(get_evaluation_task)
):
	"""
	Realtime interview channel.  Frames are JSON {"event": str, "data": {...}} with audio as base64.
	The bearer token comes from ?token= or the Authorization header.
	"""
	user_id = user_id_from_payload(verify_access_token(_token_from(websocket)))
	if user_id is None:
		logger.warning(f"Rejected interview socket without valid token")
		await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
		return

	await websocket.accept()
	connection_id = str(uuid.uuid4())
	connection_store.register(connection_id, user_id)
	logger.info(f"Interview socket connected", connection_id=connection_id, user_id=user_id)

	ai_agent = AiAgent()
	voice_service = VoiceService(db, ai_agent)
	session_service = InterviewSessionService(db, ai_agent=ai_agent, voice_service=voice_service, evaluation_task=evaluation_task)
	gateway = InterviewGateway(websocket, connection_id, connection_store, session_service, voice_service)

	try:
		while True:
			raw = await websocket.receive_text()
			try:
				frame = json.loads(raw)
			except json.JSONDecodeError:
				await gateway.emit("error", {"message": "Frames must be JSON", "code": "VALIDATION_ERROR"})
				continue
			if not isinstance(frame, dict):
				await gateway.emit("error", {"message": "Frames must be JSON objects", "code": "VALIDATION_ERROR"})
				continue

			data = frame.get("data") if isinstance(frame.get("data"), dict) else {}
			await gateway.dispatch(frame.get("event"), data)
	except WebSocketDisconnect:
		logger.info(f"Interview socket disconnected", connection_id=connection_id, user_id=user_id)
	finally:
		connection_store.remove(connection_id)
