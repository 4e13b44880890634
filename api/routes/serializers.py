"""Conversion of database rows to response models."""
from api.models import AttemptResponse, ResultResponse, UserAnswerResponse
from api.models.db.attempt import Result, TestAttempt, UserAnswer


def answer_to_response(row: UserAnswer) -> UserAnswerResponse:
    """Convert UserAnswer to response model."""
    return UserAnswerResponse(
        id=row.id,
        attemptId=row.attempt_id,
        questionId=row.question_id,
        answerIds=row.answer_ids,
        answerText=row.answer_text,
        updatedAt=row.updated_at,
    )


def attempt_to_response(
    attempt: TestAttempt, include_answers: bool = False
) -> AttemptResponse:
    """Convert TestAttempt to response model."""
    return AttemptResponse(
        id=attempt.id,
        userId=attempt.user_id,
        testId=attempt.test_id,
        status=attempt.status,
        startedAt=attempt.started_at,
        pausedAt=attempt.paused_at,
        resumedAt=attempt.resumed_at,
        completedAt=attempt.completed_at,
        totalTime=attempt.total_time,
        userAnswers=[answer_to_response(a) for a in attempt.answers] if include_answers else None,
    )


def result_to_response(result: Result) -> ResultResponse:
    """Convert Result to response model."""
    test = result.test
    return ResultResponse(
        id=result.id,
        attemptId=result.attempt_id,
        testId=result.test_id,
        testTitle=test.title if test else None,
        subjectSlug=test.subject.slug if test and test.subject else None,
        correctAnswers=result.correct_answers,
        totalQuestions=result.total_questions,
        rawScore=result.raw_score,
        maxScore=result.max_score,
        scaledScore=result.scaled_score,
        percentage=result.percentage,
        timeSpent=result.time_spent,
        createdAt=result.created_at,
    )
