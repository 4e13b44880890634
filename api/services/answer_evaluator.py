"""Answer correctness evaluation for every question type.

Each question type compares the submitted answer against a different
shape of reference data, so the reference is modelled as a small tagged
variant (``CorrectnessSpec``) built once from the question's answer options:

* ``OptionSet``       single_choice, multiple_answers: correct option ids
* ``PositionSet``     select_three: display positions of the correct options
* ``OrderedSequence`` matching: pair labels ordered by option order
* ``TextSet``         written: accepted texts, normalized

Evaluation is pure. Malformed or missing answers evaluate as incorrect.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Iterable, Protocol, Sequence, Union

from api.models.db.catalog import QuestionType

_INT_TOKEN = re.compile(r"^[+-]?\d+$")


class AnswerOption(Protocol):
    """Shape of an answer option (the ORM ``Answer`` satisfies it)."""

    id: str
    content: str
    is_correct: bool
    order: int | None
    matching_pair: str | None


@dataclass(frozen=True)
class OptionSet:
    ids: frozenset[str]


@dataclass(frozen=True)
class PositionSet:
    tokens: frozenset[str]


@dataclass(frozen=True)
class OrderedSequence:
    labels: tuple[str, ...]


@dataclass(frozen=True)
class TextSet:
    texts: frozenset[str]


CorrectnessSpec = Union[OptionSet, PositionSet, OrderedSequence, TextSet]
SubmittedAnswer = Union[str, int, Sequence[Any], None]

_SPEC_FOR_TYPE: dict[str, type] = {
    QuestionType.SINGLE_CHOICE.value: OptionSet,
    QuestionType.MULTIPLE_ANSWERS.value: OptionSet,
    QuestionType.SELECT_THREE.value: PositionSet,
    QuestionType.MATCHING.value: OrderedSequence,
    QuestionType.WRITTEN.value: TextSet,
}

_DEFAULT_POINTS: dict[str, int] = {
    QuestionType.WRITTEN.value: 2,
    QuestionType.MATCHING.value: 4,
    QuestionType.SELECT_THREE.value: 3,
}


@dataclass(frozen=True)
class Evaluation:
    """Outcome of comparing one answer with its correctness spec."""

    is_correct: bool
    matched: int = 0
    expected: int = 0

    @property
    def partial(self) -> bool:
        return not self.is_correct and self.matched > 0


INCORRECT = Evaluation(is_correct=False)


def normalize_text(value: str) -> str:
    """Normalize free text for comparison."""
    return value.strip().casefold()


def normalize_position(value: object) -> str:
    """Normalize a select_three token ("01 " and 1 both become "1")."""
    token = str(value).strip()
    if _INT_TOKEN.match(token):
        return str(int(token))
    return token


def _sorted_options(answers: Iterable[AnswerOption]) -> list[AnswerOption]:
    return sorted(answers, key=lambda a: a.order if a.order is not None else 0)


def build_correctness_spec(
    question_type: str, answers: Iterable[AnswerOption]
) -> CorrectnessSpec | None:
    """Build the reference data for a question from its answer options.

    Returns None for unknown question types.
    """
    options = list(answers)

    if question_type in (
        QuestionType.SINGLE_CHOICE.value,
        QuestionType.MULTIPLE_ANSWERS.value,
    ):
        return OptionSet(frozenset(str(a.id) for a in options if a.is_correct))

    if question_type == QuestionType.SELECT_THREE.value:
        # Students type the displayed position of an option, which is its order.
        tokens = set()
        for index, option in enumerate(_sorted_options(options), start=1):
            if option.is_correct:
                position = option.order if option.order is not None else index
                tokens.add(normalize_position(position))
        return PositionSet(frozenset(tokens))

    if question_type == QuestionType.MATCHING.value:
        labels = tuple(
            a.matching_pair.strip()
            for a in _sorted_options(options)
            if a.matching_pair and a.matching_pair.strip()
        )
        return OrderedSequence(labels)

    if question_type == QuestionType.WRITTEN.value:
        return TextSet(
            frozenset(
                normalize_text(a.content)
                for a in options
                if a.is_correct and a.content and a.content.strip()
            )
        )

    return None


def decode_submitted_answer(
    answer_text: str | None, answer_ids: str | None
) -> SubmittedAnswer:
    """Turn a stored answer row back into a submitted answer.

    Free text wins over the serialized id list. Undecodable data is an empty answer.
    """
    if answer_text:
        return answer_text
    if not answer_ids:
        return []
    try:
        decoded = json.loads(answer_ids)
    except (json.JSONDecodeError, TypeError, ValueError):
        return []
    if isinstance(decoded, list):
        # Keep slot positions; matching compares answers slot by slot
        return [item if isinstance(item, (str, int, float)) else "" for item in decoded]
    if isinstance(decoded, (str, int, float)) and not isinstance(decoded, bool):
        return [decoded]
    return []


def _as_items(submitted: SubmittedAnswer) -> list[str]:
    if submitted is None:
        return []
    if isinstance(submitted, (str, int, float)):
        return [str(submitted)]
    return ["" if item is None else str(item) for item in submitted]


def _as_text(submitted: SubmittedAnswer) -> str:
    if submitted is None:
        return ""
    if isinstance(submitted, (str, int, float)):
        return str(submitted)
    return ",".join(str(item) for item in submitted if item is not None)


def _compare_sets(submitted: set[str], correct: frozenset[str]) -> Evaluation:
    if not correct:
        return INCORRECT
    return Evaluation(
        is_correct=submitted == correct,
        matched=len(submitted & correct),
        expected=len(correct),
    )


def _evaluate_options(submitted: SubmittedAnswer, spec: OptionSet) -> Evaluation:
    chosen = {item.strip() for item in _as_items(submitted) if item.strip()}
    return _compare_sets(chosen, spec.ids)


def _evaluate_positions(submitted: SubmittedAnswer, spec: PositionSet) -> Evaluation:
    chosen = {normalize_position(item) for item in _as_items(submitted) if item.strip()}
    return _compare_sets(chosen, spec.tokens)


def _evaluate_sequence(submitted: SubmittedAnswer, spec: OrderedSequence) -> Evaluation:
    if not spec.labels:
        return INCORRECT
    given = [item.strip() for item in _as_items(submitted)]
    while given and not given[-1]:
        given.pop()
    matched = sum(
        1
        for index, label in enumerate(spec.labels)
        if index < len(given) and given[index] == label
    )
    return Evaluation(
        is_correct=tuple(given) == spec.labels,
        matched=matched,
        expected=len(spec.labels),
    )


def _evaluate_text(submitted: SubmittedAnswer, spec: TextSet) -> Evaluation:
    if not spec.texts:
        return INCORRECT
    text = normalize_text(_as_text(submitted))
    is_correct = bool(text) and text in spec.texts
    return Evaluation(is_correct=is_correct, matched=int(is_correct), expected=1)


def evaluate(
    question_type: str,
    submitted: SubmittedAnswer,
    spec: CorrectnessSpec | None,
) -> Evaluation:
    """Evaluate a submitted answer against the question's correctness spec."""
    expected_kind = _SPEC_FOR_TYPE.get(question_type)
    if spec is None or expected_kind is None or not isinstance(spec, expected_kind):
        return INCORRECT

    if isinstance(spec, OptionSet):
        return _evaluate_options(submitted, spec)
    if isinstance(spec, PositionSet):
        return _evaluate_positions(submitted, spec)
    if isinstance(spec, OrderedSequence):
        return _evaluate_sequence(submitted, spec)
    return _evaluate_text(submitted, spec)


def evaluate_question(question: Any, submitted: SubmittedAnswer) -> Evaluation:
    """Evaluate an answer to an ORM question using its own options."""
    spec = build_correctness_spec(question.type, question.answers)
    return evaluate(question.type, submitted, spec)


def correct_answer_display(question: Any) -> list[str]:
    """Correct answer in the form shown next to a mistake."""
    spec = build_correctness_spec(question.type, question.answers)
    if isinstance(spec, OrderedSequence):
        return list(spec.labels)
    if isinstance(spec, PositionSet):
        return sorted(spec.tokens, key=lambda t: (len(t), t))
    return [a.content for a in question.answers if a.is_correct]


def question_points(question_type: str, stored: int | None) -> int:
    """Points a question is worth.

    Multi-part types default to more than one point; a stored weight of one
    or less on such a type is treated as unset.
    """
    base = _DEFAULT_POINTS.get(question_type, 1)
    if stored is None:
        return base
    if stored <= 1 and base > 1:
        return base
    return stored


def partial_points(points: int, evaluation: Evaluation) -> int:
    """Proportional points for a partially correct answer."""
    if evaluation.is_correct:
        return points
    if not evaluation.partial or evaluation.expected <= 0:
        return 0
    return int(points * evaluation.matched / evaluation.expected + 0.5)
