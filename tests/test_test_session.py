from __future__ import annotations

import random

import pytest

from conftest import FakeClock, make_question
from review_app.core.models import TestConfiguration
from review_app.core.services.question_bank import QuestionBank
from review_app.core.services.result_log import ResultLog
from review_app.core.services.test_session import (
    EmptyPoolError,
    SessionPhase,
    SessionStateError,
    TestSession,
    filter_pool,
)


class RecordingStore:
    """Question store double that remembers stat updates."""

    def __init__(self, questions) -> None:
        self._questions = list(questions)
        self.calls: list[tuple[str, bool]] = []

    def list_questions(self):
        return list(self._questions)

    def record_answer(self, question_id: str, was_correct: bool) -> None:
        self.calls.append((question_id, was_correct))


def _started(session: TestSession, bank: QuestionBank, **config_fields) -> TestSession:
    config = TestConfiguration(**{"question_count": 10, **config_fields})
    session.start(session.configure(bank.list_questions(), config), config)
    return session


def test_new_session_is_configuring(session):
    assert session.get_phase() is SessionPhase.CONFIGURING
    assert session.get_current_question() is None


def test_configure_without_filter_returns_whole_pool(session, bank):
    pool = session.configure(bank.list_questions(), TestConfiguration(question_count=5))
    assert [q.id for q in pool] == [q.id for q in bank.list_questions()]


def test_configure_filters_by_subject_chapter_and_type():
    pool = [
        make_question("m1", subject_id="math", chapter_id="alg", type_id="t1"),
        make_question("m2", subject_id="math", chapter_id="calc", type_id="t2"),
        make_question("p1", subject_id="phys", chapter_id="mech", type_id="t1"),
    ]
    assert [q.id for q in filter_pool(pool, TestConfiguration(5, subject_ids=("math",)))] == ["m1", "m2"]
    assert [q.id for q in filter_pool(pool, TestConfiguration(5, chapter_ids=("calc", "mech")))] == ["m2", "p1"]
    assert [q.id for q in filter_pool(pool, TestConfiguration(5, type_ids=("t1",)))] == ["m1", "p1"]


def test_configure_with_no_matching_questions_fails(session, bank):
    with pytest.raises(EmptyPoolError):
        session.configure(bank.list_questions(), TestConfiguration(5, subject_ids=("missing",)))


def test_start_with_empty_pool_fails(session):
    with pytest.raises(EmptyPoolError):
        session.start([], TestConfiguration(5))
    assert session.get_phase() is SessionPhase.CONFIGURING


def test_zero_question_count_is_rejected(session, bank):
    with pytest.raises(ValueError):
        session.configure(bank.list_questions(), TestConfiguration(0))


@pytest.mark.parametrize("count, expected", [(55, 55), (80, 60)])
def test_large_request_is_clamped_without_error(clock, count, expected):
    pool = [make_question(f"q{i}") for i in range(60)]
    session = TestSession(RecordingStore(pool), ResultLog(), rng=random.Random(5), clock=clock)
    config = TestConfiguration(count)

    session.start(session.configure(pool, config), config)

    assert session.get_question_count() == expected
    assert len({q.id for q in session.get_questions()}) == expected


def test_request_larger_than_pool_is_clamped(session, bank):
    _started(session, bank, question_count=10)
    ids = [q.id for q in session.get_questions()]
    assert len(ids) == 5
    assert len(set(ids)) == 5
    assert set(ids) == {q.id for q in bank.list_questions()}
    assert session.get_position() == 0
    assert session.is_in_progress()


def test_sampling_is_deterministic_for_a_seed(bank, results, clock):
    orders = []
    for _ in range(2):
        s = TestSession(bank, results, rng=random.Random(42), clock=clock)
        _started(s, bank, question_count=3)
        orders.append([q.id for q in s.get_questions()])
    assert orders[0] == orders[1]
    assert len(orders[0]) == 3


def test_start_drops_duplicate_pool_entries(session):
    q = make_question("dup")
    session.start([q, q, make_question("other")], TestConfiguration(10))
    assert sorted(x.id for x in session.get_questions()) == ["dup", "other"]


def test_start_sets_countdown_from_time_limit(session, bank):
    _started(session, bank, time_limit_minutes=2)
    assert session.get_remaining_seconds() == 120


def test_no_countdown_without_time_limit(session, bank):
    _started(session, bank)
    assert session.get_remaining_seconds() is None
    assert session.tick() is None
    assert session.is_in_progress()


def test_cannot_start_twice(session, bank):
    _started(session, bank)
    with pytest.raises(SessionStateError):
        session.start(bank.list_questions(), TestConfiguration(5))


def test_select_answer_last_write_wins(session, bank):
    _started(session, bank)
    current = session.get_current_question()
    session.select_answer("A")
    session.select_answer("b")
    assert session.get_answer(current.id) == "B"
    assert session.get_position() == 0


def test_select_answer_is_idempotent(session, bank):
    _started(session, bank)
    session.select_answer("C")
    once = session.get_answers()
    session.select_answer("C")
    assert session.get_answers() == once


def test_select_answer_rejects_unknown_label(session, bank):
    _started(session, bank)
    with pytest.raises(ValueError):
        session.select_answer("E")


def test_go_to_out_of_range_fails_fast(session, bank):
    _started(session, bank)
    with pytest.raises(IndexError):
        session.go_to(5)
    with pytest.raises(IndexError):
        session.go_to(-1)


def test_revisiting_keeps_previous_answer(session, bank):
    _started(session, bank)
    first = session.get_current_question()
    session.select_answer("D")
    session.go_to(3)
    session.go_to(0)
    assert session.get_answer(first.id) == "D"


def test_time_accumulates_across_revisits(session, bank, clock):
    _started(session, bank)
    first = session.get_current_question().id
    clock.advance(7)
    session.go_to(1)
    clock.advance(4)
    session.go_to(0)
    clock.advance(5)
    session.go_to(2)
    times = session.get_question_times()
    assert times[first] == 12
    assert times[session.get_questions()[1].id] == 4


def test_go_to_same_index_still_flushes_time(session, bank, clock):
    _started(session, bank)
    first = session.get_current_question().id
    clock.advance(3)
    session.go_to(0)
    clock.advance(2)
    session.go_to(0)
    assert session.get_question_times()[first] == 5


def test_next_and_previous_stay_in_bounds(session, bank):
    _started(session, bank)
    session.previous_question()
    assert session.get_position() == 0
    for _ in range(10):
        session.next_question()
    assert session.get_position() == 4


def test_submit_scores_and_updates_only_answered_questions(clock):
    pool = [make_question(f"q{i}", correct="A") for i in range(5)]
    store = RecordingStore(pool)
    sink = ResultLog()
    session = TestSession(store, sink, rng=random.Random(1), clock=clock)
    config = TestConfiguration(question_count=10)
    session.start(session.configure(store.list_questions(), config), config)

    for index in range(3):
        session.go_to(index)
        session.select_answer("A")

    review = session.submit()
    result = review.result

    assert result.score == 3
    assert result.total_questions == 5
    assert result.config.question_count == 5
    assert result.config.subject_ids == ()
    assert result.score == sum(1 for a in result.answers if a.is_correct)
    assert len(store.calls) == 3
    assert all(correct for _, correct in store.calls)
    unanswered = [a for a in result.answers if a.selected_answer is None]
    assert len(unanswered) == 2
    assert not any(a.is_correct for a in unanswered)
    assert sink.list_results() == [result]
    assert result.id


def test_submit_marks_wrong_answers(session, bank):
    _started(session, bank)
    session.select_answer("B")
    review = session.submit()
    answer = review.result.answers[0]
    assert answer.selected_answer == "B"
    assert answer.is_correct is False
    assert bank.get_question(answer.question_id).times_answered == 1
    assert bank.get_question(answer.question_id).times_correct == 0


def test_submit_records_elapsed_and_per_question_time(session, bank, clock):
    _started(session, bank)
    clock.advance(10)
    session.go_to(1)
    clock.advance(20)
    review = session.submit()
    result = review.result
    assert result.time_taken == 30
    times = {a.question_id: a.time_taken for a in result.answers}
    assert times[review.questions[0].id] == 10
    assert times[review.questions[1].id] == 20
    assert all(a.time_taken >= 0 for a in result.answers)


def test_submit_is_terminal(session, bank):
    _started(session, bank)
    review = session.submit()
    assert session.get_phase() is SessionPhase.SUBMITTED
    assert session.get_review() is review
    with pytest.raises(SessionStateError):
        session.submit()
    with pytest.raises(SessionStateError):
        session.select_answer("A")
    with pytest.raises(SessionStateError):
        session.go_to(0)


def test_countdown_expires_after_sixty_ticks(session, bank, results):
    _started(session, bank, time_limit_minutes=1)
    for _ in range(59):
        assert session.tick() is None
    assert session.get_remaining_seconds() == 1

    review = session.tick()

    assert review is not None
    assert session.get_phase() is SessionPhase.SUBMITTED
    assert review.result.score == 0
    assert all(a.selected_answer is None for a in review.result.answers)
    assert len(results.list_results()) == 1


def test_countdown_expiry_keeps_answers_given_so_far(session, bank):
    _started(session, bank, time_limit_minutes=1)
    correct = session.get_current_question().correct_answer
    session.select_answer(correct)
    review = None
    for _ in range(60):
        review = session.tick()
    assert review is not None
    assert review.result.score == 1


def test_advance_clock_counts_whole_seconds(session, bank, clock):
    _started(session, bank, time_limit_minutes=1)
    assert session.advance_clock(clock.advance(10.6)) is None
    assert session.get_remaining_seconds() == 50
    assert session.advance_clock(clock.advance(49.3)) is None
    assert session.get_remaining_seconds() == 1


def test_advance_clock_submits_when_time_is_up(session, bank, clock):
    _started(session, bank, time_limit_minutes=1)
    review = session.advance_clock(clock.advance(75))
    assert review is not None
    assert review.result.time_taken == 75
    assert session.get_remaining_seconds() == 0


def test_advance_clock_without_limit_is_noop(session, bank, clock):
    _started(session, bank)
    assert session.advance_clock(clock.advance(10_000)) is None
    assert session.is_in_progress()


def test_review_grade_and_percentage():
    pool = [make_question(f"q{i}") for i in range(4)]
    session = TestSession(RecordingStore(pool), ResultLog(), rng=random.Random(0), clock=FakeClock())
    session.start(pool, TestConfiguration(4))
    for index in range(3):
        session.go_to(index)
        session.select_answer("A")
    review = session.submit()
    assert review.percentage == 75
    assert review.grade == "Good Work!"
