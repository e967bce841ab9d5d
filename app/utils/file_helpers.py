import os
import re
import uuid

from .logger import logger
from ..core.config import settings


AUDIO_EXTENSIONS = {"webm", "mp3", "wav", "m4a", "ogg", "mp4", "mpeg", "mpga"}


def clean_filename_part(text: str) -> str:
    """
    Reduce text to characters safe for a filename

    :param text: raw name
    :return: lowercase name with only letters, digits, underscores and hyphens
    """
    cleaned = re.sub(r'\s+', '_', (text or '').strip())
    cleaned = re.sub(r'[^a-zA-Z0-9_\-]', '', cleaned)
    return cleaned.lower()


def get_file_extension(filename: str) -> str:
    parts = (filename or '').rsplit('.', 1)
    return parts[1].lower() if len(parts) == 2 else ''


def audio_extension(filename: str, default: str = 'webm') -> str:
    extension = get_file_extension(filename)
    return extension if extension in AUDIO_EXTENSIONS else default


def save_interview_audio(user_id: int, session_id: int, buffer: bytes, extension: str = 'webm') -> str:
    """
    Persist a recorded answer under the interview directory.

    :param user_id: owner of the session
    :param session_id: interview session the recording belongs to
    :param buffer: raw audio bytes
    :param extension: file extension without the dot
    :return: path of the saved file, used as the message audio_url
    """
    basepath = os.path.join(settings.interview_dir, str(user_id), str(session_id))
    if not os.path.exists(basepath):
        os.makedirs(basepath)

    filename = f"{uuid.uuid4().hex}.{clean_filename_part(extension) or 'webm'}"
    audio_file = os.path.join(basepath, filename)

    with open(audio_file, 'wb') as f:
        f.write(buffer)

    logger.debug(f"Saved interview audio", session_id=session_id, audio_file=audio_file, size=len(buffer))
    return audio_file
