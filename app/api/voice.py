from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List

from ..core.database import get_db
from ..schemas.interview import VoiceResponse
from ..middleware.auth_middleware import get_current_user
from ..utils.voice_service import VoiceService

router = APIRouter()


@router.get("/voice", response_model=List[VoiceResponse], status_code=status.HTTP_200_OK)
async def list_voices(
	db: Session = Depends(get_db),
	user_id: int = Depends(get_current_user)
):
	"""
	Voices the user can pick for the interviewer: the system defaults plus their own.
	"""
	return VoiceService(db).get_voices(user_id)
