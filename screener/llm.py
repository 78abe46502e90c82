import json
import logging
import time
from typing import List, Optional, Type, TypeVar

import httpx
from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel, ValidationError

from .config import get_settings
from .schemas import (
    TIME_LIMITS,
    ChatMessage,
    ChatVerification,
    ContactInfo,
    GeneratedQuestions,
    Question,
    ScoreResult,
)

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

LEVEL_ORDER = ("easy", "medium", "hard")
QUESTIONS_PER_LEVEL = 2

EXTRACTION_PROMPT = (
    "You are an expert data extraction bot. Extract the fields name, email and phone number "
    "from the resume text. Return JSON with exactly the keys name, email, phone. "
    "Use the string 'Not Found' for any field that is missing."
)

VERIFICATION_PROMPT = (
    "You help a job candidate confirm their contact details before an interview. "
    "You are given the conversation so far and the current details (name, email, phone). "
    "Apply any corrections or missing values the candidate provides; keep 'Not Found' for "
    "anything still unknown. Ask for whatever is missing, one friendly sentence at a time. "
    "Once all three are known, ask the candidate to confirm they are correct. "
    "Respond ONLY in JSON with keys: reply (string), state (object with name, email, phone), "
    "confirmed (true only when the candidate has explicitly confirmed all details)."
)

QUESTION_PROMPT = (
    "You are a technical interviewer. Generate interview questions for the given role: "
    "exactly 2 easy, 2 medium and 2 hard, each answerable in a few sentences. "
    "Respond ONLY in JSON with key questions: a list of objects with keys text and level "
    "(one of easy, medium, hard), ordered from easy to hard."
)

SCORING_PROMPT = (
    "You are an interview evaluator. Given the candidate details and their answers "
    "(with the difficulty and seconds taken for each question), rate the interview. "
    "An answer of '[No Answer]' means the candidate ran out of time. "
    "Respond ONLY in JSON with keys: score (integer 0-100) and summary (2-3 sentences)."
)


class OracleError(Exception):
    """Raised when the language model is unreachable or returns an unusable response"""
    pass


class InterviewOracle:
    """
    The four language-model calls the interview flow depends on.

    Each call asks for a JSON object and validates it against a pydantic
    model. Any transport error, timeout, malformed JSON or shape mismatch is
    raised as OracleError; callers substitute their own fallback.
    """

    def __init__(self, client: Optional[AsyncOpenAI] = None, model: Optional[str] = None):
        settings = get_settings()
        self.client = client or AsyncOpenAI(
            api_key=settings.openai_api_key,
            timeout=httpx.Timeout(settings.llm_timeout_seconds),
            max_retries=1,
        )
        self.model = model or settings.openai_model

    async def _complete_json(self, system: str, user: str, schema: Type[T], temperature: float = 0.2) -> T:
        start_time = time.time()
        try:
            resp = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                temperature=temperature,
                response_format={"type": "json_object"},
            )
        except (OpenAIError, httpx.HTTPError) as e:
            logger.error(f"LLM request failed: {e}")
            raise OracleError(f"LLM request failed: {e}") from e

        elapsed = time.time() - start_time
        logger.info(f"LLM {schema.__name__} response received in {elapsed:.2f}s")

        try:
            raw = resp.choices[0].message.content or ""
            return schema.model_validate(json.loads(raw))
        except (IndexError, AttributeError, json.JSONDecodeError, ValidationError) as e:
            logger.error(f"LLM returned an unusable {schema.__name__}: {e}")
            raise OracleError(f"Malformed {schema.__name__} response") from e

    async def extract_contact(self, resume_text: str) -> ContactInfo:
        # Clip overly long resumes
        trimmed = resume_text[:12000]
        user = f'Extract contact information from the following text:\n\n"""{trimmed}"""'
        return await self._complete_json(EXTRACTION_PROMPT, user, ContactInfo, temperature=0.0)

    async def verify_chat(self, messages: List[ChatMessage], current: ContactInfo) -> ChatVerification:
        transcript = "\n".join(f"{m.role}: {m.content}" for m in messages)
        user = (
            f"Current details:\n{current.model_dump_json()}\n"
            f"Conversation:\n{transcript}\n"
            "Return JSON only."
        )
        return await self._complete_json(VERIFICATION_PROMPT, user, ChatVerification, temperature=0.3)

    async def generate_questions(self, role: str) -> List[Question]:
        result = await self._complete_json(
            QUESTION_PROMPT, f"Role: {role}\nReturn JSON only.", GeneratedQuestions, temperature=0.7
        )
        by_level = {level: [q for q in result.questions if q.level == level] for level in LEVEL_ORDER}
        if any(len(qs) != QUESTIONS_PER_LEVEL for qs in by_level.values()) or len(result.questions) != 6:
            counts = {level: len(qs) for level, qs in by_level.items()}
            logger.error(f"LLM returned the wrong question mix: {counts}")
            raise OracleError(f"Expected 2 questions per level, got {counts}")

        ordered = [q for level in LEVEL_ORDER for q in by_level[level]]
        return [
            Question(id=i, text=q.text, level=q.level, time_limit=TIME_LIMITS[q.level])
            for i, q in enumerate(ordered, start=1)
        ]

    async def score_interview(self, candidate: ContactInfo, questions: List[Question]) -> ScoreResult:
        answers = "\n".join(
            f"Q{q.id} ({q.level}, {q.time_taken or 0}s of {q.time_limit}s): {q.text}\nA: {q.answer or ''}"
            for q in questions
        )
        user = (
            f"Candidate: {candidate.name} <{candidate.email}>\n"
            f"Answers:\n{answers}\n"
            "Return JSON only."
        )
        return await self._complete_json(SCORING_PROMPT, user, ScoreResult)
