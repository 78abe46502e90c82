import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from .session import SessionController

logger = logging.getLogger(__name__)

SESSION_TIMEOUT = timedelta(hours=24)


class ResumeChoice(str, Enum):
    RESUME = "resume"
    START_NEW = "start_new"


class ResumePrompt(BaseModel):
    session_id: str
    status: str
    description: str
    candidate_name: str
    last_activity: str
    answered: Optional[int] = None
    total_questions: Optional[int] = None


def time_ago(delta: timedelta) -> str:
    minutes_total = int(delta.total_seconds() // 60)
    hours, minutes = divmod(max(minutes_total, 0), 60)
    if hours > 0:
        return f"{hours} hour{'s' if hours > 1 else ''} ago"
    return f"{minutes} minute{'s' if minutes != 1 else ''} ago"


class ResumePolicy:
    """Decides what happens to a session left behind by a previous run."""

    def __init__(self, controller: SessionController, timeout: timedelta = SESSION_TIMEOUT):
        self.controller = controller
        self.timeout = timeout

    def evaluate(self, now: Optional[datetime] = None) -> Optional[ResumePrompt]:
        """
        Returns a prompt for a resumable session, or None.

        Sessions idle for longer than the timeout are cleared without asking.
        """
        session = self.controller.session
        if session is None:
            return None
        now = now or self.controller.clock()
        idle = now - session.last_active_at
        if idle > self.timeout:
            logger.info(f"Session {session.id} expired after {idle}; clearing")
            self.controller.clear_session()
            return None

        answered = total = None
        if not session.interview_started:
            status = "Verification in progress"
            description = "You were in the middle of confirming your details."
        elif session.interview_running:
            current = session.current_question_index + 1
            total = len(session.questions)
            answered = session.current_question_index
            status = f"Interview in progress ({current}/{total})"
            description = f"You were answering question {current} of {total}."
        else:
            status = "Session found"
            description = "You have an unfinished session."

        return ResumePrompt(
            session_id=session.id,
            status=status,
            description=description,
            candidate_name=session.user_data.name,
            last_activity=time_ago(idle),
            answered=answered,
            total_questions=total,
        )

    def resolve(self, choice: ResumeChoice) -> None:
        if choice == ResumeChoice.START_NEW:
            self.controller.clear_session()
