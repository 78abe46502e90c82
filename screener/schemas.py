from datetime import datetime, timezone
from typing import List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

NOT_FOUND = "Not Found"

Level = Literal["easy", "medium", "hard"]

# Seconds allotted per question, by difficulty.
TIME_LIMITS = {"easy": 20, "medium": 60, "hard": 120}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id(prefix: str = "") -> str:
    return f"{prefix}{uuid4().hex}"


class ContactInfo(BaseModel):
    name: str
    email: str
    phone: str

    @field_validator("name", "email", "phone", mode="before")
    @classmethod
    def _blank_is_not_found(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            return NOT_FOUND
        return value.strip() if isinstance(value, str) else value

    def is_complete(self) -> bool:
        """True when no field holds the "Not Found" sentinel."""
        return all(v != NOT_FOUND for v in (self.name, self.email, self.phone))


class ChatMessage(BaseModel):
    id: str = Field(default_factory=lambda: new_id("msg_"))
    role: Literal["assistant", "user"]
    content: str
    timestamp: datetime = Field(default_factory=utcnow)


class Question(BaseModel):
    id: int
    text: str
    level: Level
    time_limit: int
    answer: Optional[str] = None
    time_taken: Optional[int] = None


class InterviewSession(BaseModel):
    id: str = Field(default_factory=lambda: new_id("session_"))
    extracted_info: ContactInfo
    user_data: ContactInfo
    messages: List[ChatMessage] = []
    verified: bool = False
    interview_started: bool = False
    interview_completed: bool = False
    questions: List[Question] = []
    current_question_index: int = 0
    time_left: Optional[int] = None
    is_paused: bool = False
    final_score: Optional[int] = None
    final_summary: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    last_active_at: datetime = Field(default_factory=utcnow)

    @property
    def current_question(self) -> Optional[Question]:
        if 0 <= self.current_question_index < len(self.questions):
            return self.questions[self.current_question_index]
        return None

    @property
    def interview_running(self) -> bool:
        return self.interview_started and not self.interview_completed


class StoreState(BaseModel):
    current_session: Optional[InterviewSession] = None
    completed_sessions: List[InterviewSession] = []


# Oracle response shapes. Anything that does not validate is a collaborator failure.

class ChatVerification(BaseModel):
    reply: str
    state: ContactInfo
    confirmed: bool


class GeneratedQuestion(BaseModel):
    text: str
    level: Level


class GeneratedQuestions(BaseModel):
    questions: List[GeneratedQuestion]


class ScoreResult(BaseModel):
    score: float = Field(allow_inf_nan=False)
    summary: str


# Request payloads

class ManualEntryPayload(BaseModel):
    name: str = ""
    email: str = ""
    phone: str = ""

    def to_contact(self) -> ContactInfo:
        return ContactInfo(name=self.name, email=self.email, phone=self.phone)


class ChatPayload(BaseModel):
    content: str


class StartInterviewPayload(BaseModel):
    role: str = "Full Stack Developer"


class AnswerPayload(BaseModel):
    answer: str = ""
    question_index: Optional[int] = None


class DraftPayload(BaseModel):
    text: str = ""


class ResumeChoicePayload(BaseModel):
    choice: Literal["resume", "start_new"]


def grade_for(score: int) -> str:
    if score >= 86:
        return "Excellent"
    if score >= 76:
        return "Good"
    if score >= 61:
        return "Average"
    return "Needs Improvement"
