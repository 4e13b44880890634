from api.services import attempt_service, result_service
from api.services.mistake_service import MistakeFilters, count_mistakes, get_mistakes
from api.services.scoring import LinearScalePolicy


def _submit(db, user, test, answers):
    return result_service.complete_attempt(
        db, user.id, test.id, LinearScalePolicy(), answers=answers
    )


def _choice_ids(test):
    choice = test.questions[0]
    correct = next(a.id for a in choice.answers if a.is_correct)
    wrong = next(a.id for a in choice.answers if not a.is_correct)
    return choice.id, correct, wrong


def test_wrong_answers_become_mistakes(db, user, sample_test) -> None:
    choice_id, correct, wrong = _choice_ids(sample_test)
    written_id = sample_test.questions[1].id
    _submit(db, user, sample_test, [(choice_id, wrong), (written_id, "Kyiv")])

    mistakes = get_mistakes(db, user.id)

    assert [m.question_id for m in mistakes] == [choice_id]
    mistake = mistakes[0]
    assert mistake.user_answer == wrong
    assert mistake.correct_answer == ["4"]
    assert mistake.subject_slug == "mathematics"
    assert mistake.test_title == "Sample test"


def test_later_correct_answer_clears_mistake(db, user, sample_test) -> None:
    choice_id, correct, wrong = _choice_ids(sample_test)
    _submit(db, user, sample_test, [(choice_id, wrong)])
    assert count_mistakes(db, user.id) == 1

    _submit(db, user, sample_test, [(choice_id, correct)])
    assert count_mistakes(db, user.id) == 0


def test_filters_apply_after_deduplication(db, user, sample_test) -> None:
    choice_id, correct, wrong = _choice_ids(sample_test)
    _submit(db, user, sample_test, [(choice_id, wrong)])
    _submit(db, user, sample_test, [(choice_id, correct)])

    assert get_mistakes(db, user.id, MistakeFilters(search="2 + 2")) == []


def test_filters_by_subject_type_and_search(db, user, sample_test, make_test) -> None:
    choice_id, _, wrong = _choice_ids(sample_test)
    written_id = sample_test.questions[1].id
    history = make_test(
        [{"type": "written", "content": "Year of independence", "options": [{"content": "1991", "correct": True}]}],
        subject_slug="history-ukraine",
    )
    _submit(db, user, sample_test, [(choice_id, wrong), (written_id, "Lviv")])
    _submit(db, user, history, [(history.questions[0].id, "1990")])

    assert count_mistakes(db, user.id) == 3
    by_subject = get_mistakes(db, user.id, MistakeFilters(subject="history-ukraine"))
    assert [m.question_id for m in by_subject] == [history.questions[0].id]
    by_type = get_mistakes(db, user.id, MistakeFilters(question_type="written"))
    assert {m.question_id for m in by_type} == {written_id, history.questions[0].id}
    by_search = get_mistakes(db, user.id, MistakeFilters(search="capital"))
    assert [m.question_id for m in by_search] == [written_id]


def test_unfinished_attempts_are_ignored(db, user, other_user, sample_test) -> None:
    choice_id, _, wrong = _choice_ids(sample_test)
    attempt = attempt_service.start_attempt(db, user.id, sample_test.id)
    attempt_service.save_answer(db, user.id, attempt.id, choice_id, wrong)
    _submit(db, other_user, sample_test, [(choice_id, wrong)])

    assert get_mistakes(db, user.id) == []
    assert count_mistakes(db, other_user.id) == 1


def test_answer_changed_after_another_attempt_decides(db, user, sample_test) -> None:
    choice_id, correct, wrong = _choice_ids(sample_test)
    first = attempt_service.start_attempt(db, user.id, sample_test.id)
    attempt_service.save_answer(db, user.id, first.id, choice_id, correct)

    # A second attempt completes while the first is still open
    _submit(db, user, sample_test, [(choice_id, correct)])

    attempt_service.save_answer(db, user.id, first.id, choice_id, wrong)
    result_service.complete_attempt(
        db, user.id, sample_test.id, LinearScalePolicy(), attempt_id=first.id
    )

    assert [m.question_id for m in get_mistakes(db, user.id)] == [choice_id]
