import asyncio
import logging
from enum import Enum
from typing import Callable, Optional, Tuple

from pydantic import BaseModel

from .fallbacks import (
    CHAT_APOLOGY,
    FALLBACK_SUMMARY,
    NO_ANSWER,
    fallback_questions,
    fallback_score,
    not_found_contact,
)
from .llm import InterviewOracle, OracleError
from .policy import ResumeChoice, ResumePolicy, ResumePrompt
from .resume import ExtractionError, extract_text
from .schemas import ContactInfo, InterviewSession
from .session import InvalidState, SessionController
from .timer import CountdownTimer

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    NO_SESSION = "no_session"
    UPLOADING = "uploading"
    VERIFYING = "verifying"
    AWAITING_INTERVIEW_START = "awaiting_interview_start"
    ANSWERING = "answering"
    SCORING = "scoring"
    COMPLETED = "completed"


class UploadResult(BaseModel):
    session: InterviewSession
    error: Optional[str] = None


class InterviewOrchestrator:
    """
    Sequences a screening session from upload to score.

    It is the only caller of the document extractor and the language-model
    oracle, and it turns their failures into the documented fallbacks so the
    interview can always be completed. Results of slow calls are dropped if the
    session they were made for is no longer the active one.
    """

    def __init__(
        self,
        controller: SessionController,
        oracle: InterviewOracle,
        policy: Optional[ResumePolicy] = None,
        extractor: Callable[[bytes, str], str] = extract_text,
        tick_interval: float = 1.0,
    ):
        self.controller = controller
        self.oracle = oracle
        self.policy = policy or ResumePolicy(controller)
        self.extractor = extractor
        self.timer = CountdownTimer(controller, self.handle_time_expired, interval=tick_interval)
        self.draft = ""
        self._uploading = False
        self._chatting = False
        self._starting = False
        self._scoring_id: Optional[str] = None
        self._last_completed_id: Optional[str] = None
        self._submitted: Optional[Tuple[str, int]] = None

    @property
    def session(self) -> Optional[InterviewSession]:
        return self.controller.session

    @property
    def phase(self) -> Phase:
        session = self.session
        if session is None:
            if self._uploading:
                return Phase.UPLOADING
            return Phase.COMPLETED if self._last_completed_id else Phase.NO_SESSION
        if not session.interview_started:
            return Phase.AWAITING_INTERVIEW_START if session.verified else Phase.VERIFYING
        if session.interview_completed:
            return Phase.COMPLETED
        if self._scoring_id == session.id or self._answer_pending(session):
            return Phase.SCORING
        return Phase.ANSWERING

    @staticmethod
    def _answer_pending(session: InterviewSession) -> bool:
        # The current question is answered only while scoring, or when a restart
        # landed between record_answer and moving on.
        question = session.current_question
        return question is not None and question.answer is not None

    def _is_current(self, session_id: str) -> bool:
        return self.session is not None and self.session.id == session_id

    # Upload

    async def upload(self, content: bytes, mime_type: str) -> UploadResult:
        if self.session is not None:
            raise InvalidState("A session is already active; start a new one first")
        if self._uploading:
            raise InvalidState("An upload is already being processed")
        self._uploading = True
        self._last_completed_id = None
        error = None
        try:
            try:
                text = await asyncio.to_thread(self.extractor, content, mime_type)
            except ExtractionError as e:
                logger.warning(f"Extraction failed, falling back to manual entry: {e}")
                error = str(e)
                contact = not_found_contact()
            else:
                try:
                    contact = await self.oracle.extract_contact(text)
                except OracleError as e:
                    logger.warning(f"Contact extraction failed, using empty fields: {e}")
                    contact = not_found_contact()
            if self.session is not None:
                raise InvalidState("A session was created while the upload was in flight")
            session = self.controller.create_session(contact)
        finally:
            self._uploading = False
        return UploadResult(session=session, error=error)

    def enter_manually(self, fields: ContactInfo) -> InterviewSession:
        self._last_completed_id = None
        return self.controller.create_session(fields)

    # Verification

    async def send_message(self, content: str) -> InterviewSession:
        session = self.session
        if session is None or session.interview_started:
            raise InvalidState("Chat verification is only available before the interview starts")
        if self._chatting:
            raise InvalidState("Still waiting for a reply to the previous message")
        if not content.strip():
            raise InvalidState("Message is empty")

        session_id = session.id
        self._chatting = True
        try:
            self.controller.append_message("user", content)
            try:
                result = await self.oracle.verify_chat(session.messages, session.user_data)
            except OracleError as e:
                logger.warning(f"Verification chat failed: {e}")
                if self._is_current(session_id):
                    self.controller.append_message("assistant", CHAT_APOLOGY)
                return self.session

            if not self._is_current(session_id) or self.session.interview_started:
                logger.warning(f"Dropping chat reply for stale session {session_id}")
                return self.session

            self.controller.update_user_data(result.state)
            self.controller.append_message("assistant", result.reply)
            complete = result.state.is_complete()
            if result.confirmed and complete:
                self.controller.set_verified(True)
                logger.info(f"Session {session_id} verified")
            elif self.session.verified and not complete:
                self.controller.set_verified(False)
            return self.session
        finally:
            self._chatting = False

    # Interview

    async def start_interview(self, role: str) -> InterviewSession:
        session = self.session
        if session is None or not session.verified:
            raise InvalidState("Details must be verified before the interview can start")
        if session.interview_started:
            raise InvalidState("Interview already started")
        if self._starting:
            raise InvalidState("Interview is already being prepared")

        session_id = session.id
        self._starting = True
        try:
            try:
                questions = await self.oracle.generate_questions(role)
            except OracleError as e:
                logger.warning(f"Question generation failed, using built-in bank: {e}")
                questions = fallback_questions()
            if not self._is_current(session_id):
                logger.warning(f"Dropping generated questions for stale session {session_id}")
                raise InvalidState("Session was cleared while questions were being generated")
            session = self.controller.start_interview(questions)
        finally:
            self._starting = False
        self.draft = ""
        self.timer.start()
        return session

    def update_draft(self, text: str) -> None:
        self.draft = text

    async def submit_answer(self, answer: Optional[str] = None, question_index: Optional[int] = None) -> bool:
        """
        Record the answer for the current question and move on.

        Manual submits and timer expiry both land here. Only the first submit for
        a given question is applied; later ones return False, as does a submit
        pinned to a question_index that is no longer current. An answer that is
        already recorded is kept, and the session just moves on.
        """
        session = self.session
        if session is None or not session.interview_running:
            raise InvalidState("No interview in progress")
        question = session.current_question
        if question is None:
            raise InvalidState("No current question")

        if question_index is not None and question_index != session.current_question_index:
            logger.info(f"Ignoring submit for question index {question_index}; current is {session.current_question_index}")
            return False

        key = (session.id, session.current_question_index)
        if self._submitted == key:
            logger.info(f"Ignoring duplicate submit for question index {key[1]}")
            return False
        self._submitted = key

        if question.answer is not None:
            logger.info(f"Question index {key[1]} already has an answer; keeping it and moving on")
            await self._move_on(session.id)
            return False

        text = (answer if answer is not None else self.draft).strip() or NO_ANSWER
        time_left = session.time_left if session.time_left is not None else 0
        time_taken = max(0, question.time_limit - time_left)
        index = session.current_question_index

        self.controller.record_answer(index, text, time_taken)
        self.draft = ""
        await self._move_on(session.id)
        return True

    async def _move_on(self, session_id: str) -> None:
        if not self.controller.advance_question():
            await self._finalize(session_id)

    async def handle_time_expired(self, question_index: int) -> None:
        session = self.session
        if session is None or not session.interview_running:
            return
        await self.submit_answer(None, question_index=question_index)

    async def _finalize(self, session_id: str) -> None:
        self.timer.stop()
        self._scoring_id = session_id
        session = self.session
        try:
            try:
                result = await self.oracle.score_interview(session.user_data, session.questions)
                score, summary = result.score, result.summary
            except OracleError as e:
                logger.warning(f"Scoring failed, using completion-based score: {e}")
                score, summary = fallback_score(session.questions), FALLBACK_SUMMARY

            if not self._is_current(session_id):
                logger.warning(f"Dropping score for stale session {session_id}")
                return
            completed = self.controller.complete_interview(score, summary)
            self._last_completed_id = completed.id
        finally:
            self._scoring_id = None

    # Pause / abort / resume

    def pause(self) -> None:
        self.controller.pause()

    def resume(self) -> None:
        self.controller.resume()
        if self.phase == Phase.ANSWERING:
            self.timer.start()

    def reset(self) -> None:
        self.timer.stop()
        self.controller.clear_session()
        self.draft = ""
        self._submitted = None
        self._last_completed_id = None

    def resume_prompt(self) -> Optional[ResumePrompt]:
        prompt = self.policy.evaluate()
        if prompt is None and self.session is None:
            self.timer.stop()
        return prompt

    async def resolve_resume(self, choice: ResumeChoice) -> None:
        if choice == ResumeChoice.START_NEW:
            self.reset()
            return
        self.policy.resolve(choice)
        session = self.session
        if session is None or not session.interview_running:
            return
        if self._answer_pending(session):
            await self.submit_answer(None, question_index=session.current_question_index)
        if self.phase == Phase.ANSWERING:
            self.timer.start()
