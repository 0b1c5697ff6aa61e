"""
Time slot grouping for the registration form.

Sessions that start at the same time on the same day form one time slot and
are offered as the choices of one multiple-choice question. Slots are
grouped by day, and each day is introduced by a section header.
"""

from collections.abc import Callable, Hashable, Iterable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from session_signup.api import forms_api
from session_signup.sync.session import Session

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)

SECTION_HEADER = "section_header"
MULTIPLE_CHOICE = "multiple_choice"


@dataclass(frozen=True)
class TimeSlot:
    """
    A (day, time) pair identifying one form question.

    Attributes:
        day: en-GB date string, e.g. "18/10/2026"
        time: en-GB time string, e.g. "09:30:00"
    """

    day: str
    time: str

    @property
    def title(self) -> str:
        return f"{self.time} {self.day}"

    @classmethod
    def of(cls, session: Session) -> "TimeSlot":
        return cls(day=session.day_label, time=session.time_label)


def group_in_order(items: Iterable[T], key: Callable[[T], K]) -> dict[K, list[T]]:
    """
    Group items by key, keeping first-seen key order and item order.

    Examples:
        >>> group_in_order(["a1", "b1", "a2"], key=lambda s: s[0])
        {'a': ['a1', 'a2'], 'b': ['b1']}
    """
    groups: dict[K, list[T]] = {}
    for item in items:
        groups.setdefault(key(item), []).append(item)
    return groups


def group_by_time_slot(sessions: Iterable[Session]) -> dict[TimeSlot, list[Session]]:
    """Group sessions by their time slot in first-seen order."""
    return group_in_order(sessions, key=TimeSlot.of)


def unique_in_order(values: Iterable[str]) -> list[str]:
    """Drop repeated values, keeping the first occurrence."""
    seen: set[str] = set()
    unique: list[str] = []
    for value in values:
        if value not in seen:
            seen.add(value)
            unique.append(value)
    return unique


@dataclass
class FormQuestion:
    """One item to create on the registration form."""

    kind: str
    title: str
    choices: list[str] = field(default_factory=list)

    def to_request(self, index: int) -> dict[str, Any]:
        """Build the Forms batchUpdate createItem request for this item."""
        if self.kind == SECTION_HEADER:
            return forms_api.section_header_request(self.title, index)
        return forms_api.multiple_choice_request(self.title, self.choices, index)


def plan_form_questions(sessions: Iterable[Session]) -> list[FormQuestion]:
    """
    Build the ordered list of time slot items for the registration form.

    Days come in first-seen order, each as a "Sessions for {day}" section
    header followed by one multiple-choice question per start time of that
    day (again first-seen order). Choices are the session titles of the slot,
    with duplicates collapsed.
    """
    questions: list[FormQuestion] = []
    slots = group_by_time_slot(sessions)
    by_day = group_in_order(slots.items(), key=lambda entry: entry[0].day)

    for day, day_slots in by_day.items():
        questions.append(FormQuestion(SECTION_HEADER, f"Sessions for {day}"))
        for slot, slot_sessions in day_slots:
            questions.append(
                FormQuestion(
                    MULTIPLE_CHOICE,
                    slot.title,
                    unique_in_order(s.title for s in slot_sessions),
                )
            )

    return questions
