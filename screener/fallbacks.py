import math
from typing import List

from .schemas import NOT_FOUND, TIME_LIMITS, ContactInfo, Question

NO_ANSWER = "[No Answer]"

CHAT_APOLOGY = "I'm having trouble processing your message. Could you please try again?"

FALLBACK_SUMMARY = (
    "Interview completed. Automated scoring was unavailable, so this score "
    "reflects how many of the questions were answered."
)

_QUESTION_BANK = [
    ("easy", "What is the difference between let, const and var in JavaScript?"),
    ("easy", "What does an HTTP status code in the 4xx range tell the client?"),
    ("medium", "How would you design a REST API for a simple todo application?"),
    ("medium", "Explain how you would keep server state and UI state in sync in a single-page app."),
    ("hard", "How would you design a rate limiter for a public API serving millions of users?"),
    ("hard", "Walk through how you would find and fix a memory leak in a long-running service."),
]


def not_found_contact() -> ContactInfo:
    return ContactInfo(name=NOT_FOUND, email=NOT_FOUND, phone=NOT_FOUND)


def fallback_questions() -> List[Question]:
    return [
        Question(id=i, text=text, level=level, time_limit=TIME_LIMITS[level])
        for i, (level, text) in enumerate(_QUESTION_BANK, start=1)
    ]


def is_answered(question: Question) -> bool:
    answer = (question.answer or "").strip()
    return bool(answer) and answer != NO_ANSWER


def fallback_score(questions: List[Question]) -> int:
    """round(answered_fraction * 70 + 20), kept within [20, 90]."""
    if not questions:
        return 20
    fraction = sum(1 for q in questions if is_answered(q)) / len(questions)
    score = math.floor(fraction * 70 + 20 + 0.5)
    return max(20, min(90, score))
