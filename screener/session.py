import logging
import math
from datetime import datetime
from typing import Callable, List, Optional

from .schemas import ChatMessage, ContactInfo, InterviewSession, Question, utcnow
from .store import SessionStore

logger = logging.getLogger(__name__)

QUESTIONS_PER_INTERVIEW = 6

GREETING = "Hi! I've extracted some details from your resume. Can you help me confirm or fill in the missing info?"


class InvalidState(Exception):
    """Raised when an operation is not legal for the current session state"""
    pass


class SessionController:
    """
    Owns every mutation of the session store.

    Each mutating method stamps ``last_active_at`` and persists the store before
    returning. Reads go through ``session`` and ``completed_sessions``.
    """

    def __init__(self, store: SessionStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.clock = clock

    @property
    def session(self) -> Optional[InterviewSession]:
        return self.store.state.current_session

    @property
    def completed_sessions(self) -> List[InterviewSession]:
        return self.store.state.completed_sessions

    def get_completed(self, session_id: str) -> Optional[InterviewSession]:
        for s in self.completed_sessions:
            if s.id == session_id:
                return s
        return None

    def _require_session(self) -> InterviewSession:
        if self.session is None:
            raise InvalidState("No active session")
        return self.session

    def _require_running(self) -> InterviewSession:
        session = self._require_session()
        if not session.interview_running:
            raise InvalidState("Interview is not in progress")
        return session

    def _touch(self, session: InterviewSession) -> None:
        session.last_active_at = self.clock()
        self.store.save()

    def create_session(self, extracted_info: ContactInfo) -> InterviewSession:
        if self.session is not None:
            raise InvalidState(f"Session {self.session.id} is still active; clear it first")
        now = self.clock()
        session = InterviewSession(
            extracted_info=extracted_info.model_copy(),
            user_data=extracted_info.model_copy(),
            messages=[ChatMessage(role="assistant", content=GREETING, timestamp=now)],
            last_active_at=now,
        )
        self.store.state.current_session = session
        self.store.save()
        logger.info(f"Created session {session.id}")
        return session

    def update_user_data(self, fields: ContactInfo) -> None:
        session = self.session
        if session is None:
            return
        session.user_data = fields.model_copy()
        self._touch(session)

    def append_message(self, role: str, content: str) -> ChatMessage:
        session = self._require_session()
        message = ChatMessage(role=role, content=content, timestamp=self.clock())
        session.messages.append(message)
        self._touch(session)
        return message

    def set_verified(self, value: bool) -> None:
        session = self._require_session()
        if session.interview_started and session.verified and not value:
            raise InvalidState("Cannot revoke verification after the interview has started")
        session.verified = value
        self._touch(session)

    def start_interview(self, questions: List[Question]) -> InterviewSession:
        session = self._require_session()
        if session.interview_started:
            raise InvalidState("Interview already started")
        if len(questions) != QUESTIONS_PER_INTERVIEW:
            raise InvalidState(f"Expected {QUESTIONS_PER_INTERVIEW} questions, got {len(questions)}")
        now = self.clock()
        session.questions = [q.model_copy() for q in questions]
        session.interview_started = True
        session.current_question_index = 0
        session.time_left = session.questions[0].time_limit
        session.is_paused = False
        session.started_at = now
        self._touch(session)
        logger.info(f"Interview started for session {session.id}")
        return session

    def record_answer(self, index: int, answer: str, time_taken: int) -> None:
        session = self._require_running()
        if not 0 <= index < len(session.questions):
            raise InvalidState(f"Question index {index} out of range")
        question = session.questions[index]
        question.answer = answer
        question.time_taken = time_taken
        self._touch(session)

    def advance_question(self) -> bool:
        session = self._require_running()
        next_index = session.current_question_index + 1
        if next_index >= len(session.questions):
            return False
        session.current_question_index = next_index
        session.time_left = session.questions[next_index].time_limit
        self._touch(session)
        return True

    def tick(self) -> Optional[int]:
        """Take one second off the current question's clock, never below zero."""
        session = self._require_running()
        if session.time_left is None:
            return None
        session.time_left = max(0, session.time_left - 1)
        self._touch(session)
        return session.time_left

    def pause(self) -> None:
        session = self._require_session()
        session.is_paused = True
        self._touch(session)

    def resume(self) -> None:
        session = self._require_session()
        session.is_paused = False
        self._touch(session)

    def complete_interview(self, score: float, summary: str) -> InterviewSession:
        session = self._require_running()
        if not math.isfinite(score):
            raise InvalidState(f"Score must be a finite number, got {score}")
        final_score = max(0, min(100, int(round(score))))
        now = self.clock()
        session.interview_completed = True
        session.final_score = final_score
        session.final_summary = summary
        session.time_left = None
        session.completed_at = now
        session.last_active_at = now
        self.store.state.completed_sessions.append(session)
        self.store.state.current_session = None
        self.store.save()
        logger.info(f"Session {session.id} completed with score {session.final_score}")
        return session

    def clear_session(self) -> None:
        if self.session is not None:
            logger.info(f"Clearing session {self.session.id}")
        self.store.state.current_session = None
        self.store.save()
