from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import UpstreamError
from ..models.models import Voice, VoiceType
from .ai_agent import AiAgent
from .logger import logger


DEFAULT_VOICES = [
    {"name": "Professional (Male)", "voice_code": "onyx", "style": "Professional"},
    {"name": "Friendly (Female)", "voice_code": "nova", "style": "Friendly"},
    {"name": "Neutral", "voice_code": "alloy", "style": "Neutral"},
]


class VoiceService:
    """
    Speech-to-text and text-to-speech for interviews, plus the catalogue of
    voices a user may pick for the interviewer.
    """

    def __init__(self, db: Session = None, ai_agent: AiAgent = None):
        self.db = db
        self.ai_agent = ai_agent or AiAgent()

    def get_voices(self, user_id: int) -> List[Voice]:
        """Default voices plus the user's own cloned voices."""
        return (
            self.db.query(Voice)
            .filter(or_(Voice.voice_type == VoiceType.DEFAULT, Voice.user_id == user_id))
            .order_by(Voice.created_at, Voice.voice_id)
            .all()
        )

    def is_available(self, user_id: int, voice_id: int) -> bool:
        return any(v.voice_id == voice_id for v in self.get_voices(user_id))

    def voice_code_for(self, voice_id: Optional[int]) -> str:
        if voice_id and self.db is not None:
            voice = self.db.get(Voice, voice_id)
            if voice:
                return voice.voice_code
        return settings.default_voice

    def transcribe_audio(self, buffer: bytes, filename: str = "recording.webm", content_type: str = "audio/webm") -> str:
        return self.ai_agent.transcribe_audio(buffer, filename=filename, content_type=content_type)

    def synthesize_speech(self, text: str, voice_code: str = None) -> bytes:
        """
        Render text to MP3 audio.

        Raises:
            UpstreamError: provider call failed
        """
        voice = voice_code or settings.default_voice
        try:
            logger.debug(f"Synthesizing speech", voice=voice, text_length=len(text))
            response = self.ai_agent.client.audio.speech.create(
                model=settings.tts_llm,
                voice=voice,
                input=text,
                response_format="mp3"
            )
            return response.content
        except Exception as e:
            logger.error(f"Failed to synthesize speech", voice=voice, error=str(e))
            raise UpstreamError("Failed to synthesize speech")


def seed_default_voices(db: Session) -> None:
    """Insert or refresh the system voices."""
    for entry in DEFAULT_VOICES:
        existing = db.query(Voice).filter(Voice.voice_code == entry["voice_code"], Voice.voice_type == VoiceType.DEFAULT).first()
        if existing:
            existing.name = entry["name"]
            existing.style = entry["style"]
        else:
            db.add(Voice(voice_type=VoiceType.DEFAULT, **entry))
    db.commit()
    logger.debug(f"Default voices seeded", count=len(DEFAULT_VOICES))
