"""Service layer for the mistakes view.

Walks the user's answers from completed attempts, newest first. Only the
most recent answer to a question decides whether it is a mistake, so a
later correct answer removes an earlier mistake. The scan reads at most
``MISTAKES_SCAN_LIMIT`` answer rows, so very old mistakes can fall out of
the view for heavy users.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session as DBSession, selectinload

from api.config import MISTAKES_SCAN_LIMIT
from api.models.db.attempt import AttemptStatus, TestAttempt, UserAnswer
from api.models.db.catalog import Question, Test
from api.services.answer_evaluator import (
    SubmittedAnswer,
    correct_answer_display,
    decode_submitted_answer,
    evaluate_question,
)


@dataclass(frozen=True)
class MistakeFilters:
    """Optional filters applied after deduplication."""

    subject: str | None = None
    question_type: str | None = None
    search: str | None = None

    def matches(self, question: Any, subject_slug: str | None) -> bool:
        if self.subject and subject_slug != self.subject:
            return False
        if self.question_type and question.type != self.question_type:
            return False
        if self.search:
            needle = self.search.casefold()
            if needle not in (question.content or "").casefold():
                return False
        return True


@dataclass
class MistakeItem:
    """A question whose latest answer was wrong."""

    id: int
    question_id: str
    question_text: str
    image_url: str | None
    question_type: str
    test_id: str
    test_title: str
    subject_slug: str | None
    subject_name: str | None
    user_answer: SubmittedAnswer
    correct_answer: list[str] = field(default_factory=list)
    created_at: datetime | None = None


def _recent_answers(db: DBSession, user_id: int, limit: int) -> list[UserAnswer]:
    return list(
        db.execute(
            select(UserAnswer)
            .join(TestAttempt, UserAnswer.attempt_id == TestAttempt.id)
            .options(
                selectinload(UserAnswer.attempt)
                .selectinload(TestAttempt.test)
                .options(
                    selectinload(Test.subject),
                    selectinload(Test.questions).selectinload(Question.answers),
                )
            )
            .where(
                TestAttempt.user_id == user_id,
                TestAttempt.status == AttemptStatus.COMPLETED.value,
            )
            .order_by(UserAnswer.updated_at.desc(), UserAnswer.id.desc())
            .limit(limit)
        ).scalars().all()
    )


def extract_mistakes(
    answers: Iterable[UserAnswer],
    filters: MistakeFilters = MistakeFilters(),
) -> list[MistakeItem]:
    """Reduce newest-first answer rows to the deduplicated list of mistakes."""
    seen: set[str] = set()
    items: list[MistakeItem] = []

    for row in answers:
        if row.question_id in seen:
            continue
        seen.add(row.question_id)

        test = row.attempt.test if row.attempt else None
        if test is None:
            continue
        question = next((q for q in test.questions if q.id == row.question_id), None)
        if question is None:
            continue

        subject_slug = test.subject.slug if test.subject else None
        if not filters.matches(question, subject_slug):
            continue

        submitted = decode_submitted_answer(row.answer_text, row.answer_ids)
        if evaluate_question(question, submitted).is_correct:
            continue

        items.append(
            MistakeItem(
                id=row.id,
                question_id=question.id,
                question_text=question.content,
                image_url=question.image_url,
                question_type=question.type,
                test_id=test.id,
                test_title=test.title,
                subject_slug=subject_slug,
                subject_name=test.subject.name if test.subject else None,
                user_answer=submitted,
                correct_answer=correct_answer_display(question),
                created_at=row.updated_at,
            )
        )

    return items


def get_mistakes(
    db: DBSession,
    user_id: int,
    filters: MistakeFilters = MistakeFilters(),
    limit: int = MISTAKES_SCAN_LIMIT,
) -> list[MistakeItem]:
    """Get the user's current mistakes."""
    return extract_mistakes(_recent_answers(db, user_id, limit), filters)


def count_mistakes(db: DBSession, user_id: int, limit: int = MISTAKES_SCAN_LIMIT) -> int:
    """Number of questions currently in the mistakes view."""
    return len(get_mistakes(db, user_id, limit=limit))
