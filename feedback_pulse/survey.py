"""Read-only survey records supplied by the persistence layer.

Forms, questions and submitted responses live elsewhere; this module only
describes the fields the scoring engine relies on.  ``Response.from_dict``
accepts both the ``answers`` list shape and the older ``response_data``
mapping (``{question_id: value}``) so records can be fed in as they come.
"""
from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

logger = logging.getLogger(__name__)

AnswerValue = Union[int, float, str, List[str], None]


class QuestionType(str, Enum):
    """Question kinds a form can declare."""

    RATING = "rating"
    SCALE = "scale"
    MULTIPLE_CHOICE = "multiple-choice"
    CHECKBOX = "checkbox"
    TEXT = "text"
    TEXTAREA = "textarea"
    NUMBER = "number"
    OTHER = "other"

    @classmethod
    def parse(cls, raw: Any) -> "QuestionType":
        """Return the member for *raw*, mapping unknown kinds to ``OTHER``."""
        if isinstance(raw, cls):
            return raw
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            return cls.OTHER


class OptionOrder(str, Enum):
    """How multiple-choice options relate to quality.

    ``ASCENDING`` means options are authored worst first, best last.
    ``UNORDERED`` questions are never turned into a rating.
    """

    ASCENDING = "ascending"
    DESCENDING = "descending"
    UNORDERED = "unordered"


@dataclass(frozen=True)
class Question:
    """A single question of a form definition."""

    id: str
    type: QuestionType
    options: Tuple[str, ...] = ()
    max_scale: Optional[float] = None
    option_order: OptionOrder = OptionOrder.ASCENDING

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Question":
        """Build a question; raises ``ValueError`` when it has no id."""
        if data.get("id") in (None, ""):
            raise ValueError("question has no id")
        max_scale = data.get("maxScale", data.get("max"))
        try:
            max_scale = float(max_scale) if max_scale is not None else None
        except (TypeError, ValueError):
            logger.warning("Ignoring non-numeric max scale %r for question %s", max_scale, data.get("id"))
            max_scale = None
        try:
            order = OptionOrder(data.get("optionOrder", OptionOrder.ASCENDING.value))
        except ValueError:
            order = OptionOrder.ASCENDING
        return cls(
            id=str(data["id"]),
            type=QuestionType.parse(data.get("type")),
            options=tuple(str(o) for o in data.get("options") or ()),
            max_scale=max_scale,
            option_order=order,
        )


@dataclass(frozen=True)
class Answer:
    """One answer to one question inside a response."""

    question_id: str
    value: AnswerValue

    @property
    def is_empty(self) -> bool:
        """Return *True* when nothing was answered."""
        return self.value is None or self.value == "" or self.value == []


@dataclass
class Response:
    """A submitted response to a form."""

    id: str
    form_id: str
    submitted_at: Optional[datetime.datetime] = None
    answers: List[Answer] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Response":
        answers: List[Answer] = []
        for item in data.get("answers") or ():
            if not isinstance(item, dict):
                logger.warning("Skipping malformed answer %r in response %s", item, data.get("id"))
                continue
            answers.append(Answer(str(item.get("questionId")), item.get("value")))
        response_data = data.get("response_data") or {}
        if isinstance(response_data, dict):
            for question_id, value in response_data.items():
                answers.append(Answer(str(question_id), value))
        else:
            logger.warning("Ignoring non-mapping response_data in response %s", data.get("id"))
        return cls(
            id=str(data.get("id", "")),
            form_id=str(data.get("formId", data.get("form_id", ""))),
            submitted_at=parse_timestamp(
                data.get("submittedAt") or data.get("submitted_at") or data.get("created_at")
            ),
            answers=answers,
        )


def parse_timestamp(raw: Any) -> Optional[datetime.datetime]:
    """Return an aware UTC datetime for *raw* (datetime or ISO-8601 string).

    Unparsable values give *None*; callers order those first.
    """
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime.datetime):
        stamp = raw
    else:
        try:
            stamp = datetime.datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
        except ValueError:
            logger.warning("Unparsable timestamp %r", raw)
            return None
    if stamp.tzinfo is None:
        stamp = stamp.replace(tzinfo=datetime.timezone.utc)
    return stamp.astimezone(datetime.timezone.utc)


def index_questions(questions: Sequence[Question]) -> Dict[str, Question]:
    """Map question id to question."""
    return {q.id: q for q in questions}
