import json
from pathlib import Path
from typing import List, Optional

from openai import OpenAI

from ..core.config import settings
from ..core.exceptions import UpstreamError
from ..utils.logger import logger
from ..utils.ai_parsing import parse_json_object


class AiAgent:
	"""
	Facade over the OpenAI API used by question generation, evaluation, reporting and chat.
	"""

	def __init__(self, client: Optional[OpenAI] = None):
		"""
		Initialize the AI Agent.

		Args:
			client: Pre-built OpenAI client. Built from settings when omitted.
		"""
		self.default_llm = settings.default_llm
		self.question_llm = settings.question_llm
		self.chat_llm = settings.chat_llm
		self.stt_llm = settings.stt_llm

		if client is None:
			client_kwargs = {
				"api_key": settings.openai_api_key or "missing-key",
				"timeout": settings.openai_timeout,
				"max_retries": 0   # Don't retry - callers own their fallbacks
			}
			if settings.openai_project:
				client_kwargs["project"] = settings.openai_project
			client = OpenAI(**client_kwargs)

		self.client = client

		# Path to prompt templates
		self.prompts_dir = Path(__file__).parent / 'prompts'

	def _load_prompt(self, prompt_name: str) -> str:
		"""
		Load a prompt template from the prompts directory.

		Args:
			prompt_name: Name of the prompt file (without extension)

		Returns:
			Prompt template as string
		"""
		prompt_path = self.prompts_dir / f"{prompt_name}.txt"

		if not prompt_path.exists():
			raise FileNotFoundError(f"Prompt template not found: {prompt_name}")

		with open(prompt_path, 'r', encoding='utf-8') as f:
			return f.read()

	def render_prompt(self, prompt_name: str, **values) -> str:
		"""
		Load a template and substitute each {placeholder} with the matching keyword value.
		"""
		prompt = self._load_prompt(prompt_name)
		for key, value in values.items():
			prompt = prompt.replace('{' + key + '}', str(value) if value is not None else "")
		return prompt

	def generate(self, prompt: str, temperature: float = 0.7, max_tokens: int = 2000, model: str = None, system: str = None) -> str:
		"""
		Single-turn completion.

		:param prompt: user prompt
		:param temperature: sampling temperature
		:param max_tokens: completion budget
		:param model: override for the configured default model
		:param system: optional system message
		:return: raw response text
		"""
		messages = []
		if system:
			messages.append({"role": "system", "content": system})
		messages.append({"role": "user", "content": prompt})

		logger.debug(f"Calling OpenAI generate", model=model or self.default_llm, prompt_length=len(prompt))
		response = self.client.chat.completions.create(
			model=model or self.default_llm,
			messages=messages,
			temperature=temperature,
			max_tokens=max_tokens
		)

		response_text = (response.choices[0].message.content or "").strip()
		logger.debug(f"OpenAI generate completed", response_length=len(response_text))
		return response_text

	def generate_interview_questions(self, resume_data: dict, job_description: str) -> List[dict]:
		"""
		This method makes the AI call to create a question list for an interview.

		:param resume_data: parsed resume JSON
		:param job_description: parsed job requirements serialized as JSON
		:return: list of raw question dicts as written by the model
		"""
		try:
			prompt = self.render_prompt(
				'interview_questions',
				resume_data=json.dumps(resume_data or {}, ensure_ascii=False),
				job_description=job_description
			)

			logger.info(f"Calling OpenAI for interview question generation")
			response = self.client.chat.completions.create(
				model=self.question_llm,
				messages=[
					{"role": "system",
					 "content": "Hiring manager for company. You write interview questions to use for an upcoming interview."},
					{"role": "user", "content": prompt}
				],
				response_format={"type": "json_object"}
			)

			response_text = (response.choices[0].message.content or "").strip()
			logger.debug(f"Raw AI response for interview questions", response_length=len(response_text), response_preview=response_text[:500])

			if not response_text:
				raise ValueError("Empty response from OpenAI for interview questions")

			parsed = parse_json_object(response_text)
			if not parsed.ok:
				raise ValueError(parsed.error)

			questions = parsed.value.get('questions')
			return questions if isinstance(questions, list) else []
		except Exception as e:
			logger.error(f"Error during AiAgent call for interview questions", error=str(e))
			raise

	def chat_with_interviewer(self, context: str, message: str, history: List[dict]) -> dict:
		"""
		Produce the interviewer's next turn in free-form chat mode.

		:param context: interviewer system context (candidate, job, requirements)
		:param message: the candidate's latest message
		:param history: prior turns as [{"role": "user"|"assistant", "content": str}]
		:return: {"content": str, "audio_url": None}
		"""
		messages = [{"role": "system", "content": self.render_prompt('interviewer_chat', context=context)}]
		messages.extend({"role": turn["role"], "content": turn["content"]} for turn in history)
		messages.append({"role": "user", "content": message})

		logger.info(f"Calling OpenAI for interviewer chat turn", history_length=len(history))
		response = self.client.chat.completions.create(
			model=self.chat_llm,
			messages=messages,
			temperature=0.7
		)

		content = (response.choices[0].message.content or "").strip()
		if not content:
			raise ValueError("Empty response from OpenAI for interviewer chat")

		return {"content": content, "audio_url": None}

	def transcribe_audio(self, buffer: bytes, filename: str = "recording.webm", content_type: str = "audio/webm") -> str:
		"""
		Speech-to-text for a recorded answer.

		Raises:
			UpstreamError: provider call failed
		"""
		try:
			logger.debug(f"Transcribing audio", filename=filename, content_type=content_type, size=len(buffer))
			transcription = self.client.audio.transcriptions.create(
				model=self.stt_llm,
				file=(filename, buffer, content_type),
				response_format="json"
			)
			return transcription.text or ""
		except Exception as e:
			logger.error(f"Transcription failed", error=str(e))
			raise UpstreamError("Failed to transcribe audio")

	def preparation_guide(self, job_title: str, company: str, requirements: str, resume_summary: str, focus: str = None) -> str:
		"""
		Write a Markdown preparation guide for an upcoming interview.

		:return: Markdown text
		"""
		prompt = self.render_prompt(
			'preparation_guide',
			job_title=job_title,
			company=company,
			requirements=requirements,
			resume_summary=resume_summary,
			focus=focus or "general preparation"
		)

		logger.info(f"Calling OpenAI for preparation guide", job_title=job_title, company=company)
		return self.generate(
			prompt,
			temperature=0.7,
			max_tokens=2500,
			system="Experienced career coach. You prepare candidates for job interviews."
		)
