"""Typed views over raw answer rows.

Answers are stored as text (JSON for checkbox/percentage/ranking) plus an optional
numeric column. ``parse_answer`` turns a row into exactly one variant keyed by the
question type so calculators never re-parse strings. Anything unreadable becomes
``UnparseableAnswer`` and is counted, never coerced to zero.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class QuestionType(str, Enum):
    LIKERT = "likert"
    MULTIPLE_CHOICE = "multiple_choice"
    TEXT = "text"
    RANKING = "ranking"
    PERCENTAGE = "percentage"
    CHECKBOX = "checkbox"


@dataclass(frozen=True)
class LikertAnswer:
    value: float


@dataclass(frozen=True)
class PercentageAnswer:
    allocation: dict[str, float]

    def share(self, labels: tuple[str, ...]) -> float:
        wanted = {label.strip().lower() for label in labels}
        return sum(v for k, v in self.allocation.items() if k.strip().lower() in wanted)


@dataclass(frozen=True)
class ChoiceAnswer:
    choice: str


@dataclass(frozen=True)
class CheckboxAnswer:
    selected: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RankingAnswer:
    order: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class TextAnswer:
    text: str


@dataclass(frozen=True)
class UnparseableAnswer:
    raw: Any
    reason: str


ParsedAnswer = (
    LikertAnswer
    | PercentageAnswer
    | ChoiceAnswer
    | CheckboxAnswer
    | RankingAnswer
    | TextAnswer
    | UnparseableAnswer
)


def _to_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        out = float(value)
    except (TypeError, ValueError):
        return None
    if out != out:  # NaN
        return None
    return out


def _load_json(raw: Any) -> Any:
    if not isinstance(raw, str):
        return raw
    return json.loads(raw)


def _parse_likert(answer_value: Any, answer_numeric: Any) -> ParsedAnswer:
    numeric = _to_float(answer_numeric)
    if numeric is None:
        numeric = _to_float(answer_value)
    if numeric is None:
        return UnparseableAnswer(raw=answer_value, reason="likert answer has no numeric value")
    return LikertAnswer(value=numeric)


def _parse_percentage(answer_value: Any) -> ParsedAnswer:
    try:
        data = _load_json(answer_value)
    except (json.JSONDecodeError, TypeError):
        return UnparseableAnswer(raw=answer_value, reason="percentage answer is not valid JSON")
    if not isinstance(data, dict) or not data:
        return UnparseableAnswer(raw=answer_value, reason="percentage answer is not a label/percent mapping")
    allocation: dict[str, float] = {}
    for label, pct in data.items():
        number = _to_float(pct)
        if number is None:
            return UnparseableAnswer(raw=answer_value, reason=f"percentage for '{label}' is not numeric")
        allocation[str(label)] = number
    return PercentageAnswer(allocation=allocation)


def _parse_list(answer_value: Any, kind: str) -> list[str] | UnparseableAnswer:
    try:
        data = _load_json(answer_value)
    except (json.JSONDecodeError, TypeError):
        return UnparseableAnswer(raw=answer_value, reason=f"{kind} answer is not valid JSON")
    if not isinstance(data, list):
        return UnparseableAnswer(raw=answer_value, reason=f"{kind} answer is not a list")
    return [str(item) for item in data]


def parse_answer(question_type: str, answer_value: Any, answer_numeric: Any = None) -> ParsedAnswer:
    try:
        qtype = QuestionType(str(question_type))
    except ValueError:
        return UnparseableAnswer(raw=answer_value, reason=f"unknown question type '{question_type}'")

    if qtype is QuestionType.LIKERT:
        return _parse_likert(answer_value, answer_numeric)
    if qtype is QuestionType.PERCENTAGE:
        return _parse_percentage(answer_value)
    if qtype in (QuestionType.CHECKBOX, QuestionType.RANKING):
        items = _parse_list(answer_value, qtype.value)
        if isinstance(items, UnparseableAnswer):
            return items
        return CheckboxAnswer(selected=items) if qtype is QuestionType.CHECKBOX else RankingAnswer(order=items)

    if answer_value is None or not str(answer_value).strip():
        return UnparseableAnswer(raw=answer_value, reason=f"empty {qtype.value} answer")
    if qtype is QuestionType.MULTIPLE_CHOICE:
        return ChoiceAnswer(choice=str(answer_value).strip())
    return TextAnswer(text=str(answer_value))


def decode_json_field(raw: Any, fallback: Any) -> Any:
    """Decode an options/validation_rules column, falling back on malformed JSON.

    Malformed or mistyped column values are replaced by ``fallback`` without
    any error, so a corrupt row looks the same as an empty one to callers.
    """
    if raw is None or raw == "":
        return fallback
    try:
        value = _load_json(raw)
    except (json.JSONDecodeError, TypeError):
        return fallback
    return value if isinstance(value, type(fallback)) else fallback
