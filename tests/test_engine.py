"""
Tests for the assessment engine: request, score, finalize.

Covers:
- Opening (unknown competency, unregistered subject, duplicate request)
- Submitting (self-assessment, score range, duplicates, capacity, closed records)
- Finalizing (minimum assessors, threshold decision, reputation sweep, single use)
- Atomicity (refused calls leave no state behind)
- Reads (records, counts, reputation)
"""

import pytest

from peerverify.clock import LedgerClock
from peerverify.database import Contribution, Participant
from peerverify.errors import ErrorKind
from peerverify.records import AssessmentState


def _score_all(engine, key, scores):
    competency_id, subject = key
    for assessor, score in scores.items():
        result = engine.submit(competency_id, subject, assessor, score)
        assert result.ok, result


@pytest.fixture
def four_way_assessment(engine, register, create_competency):
    """Subject S open on a competency that takes four assessors, A-E registered."""
    register("S", "A", "B", "C", "D", "E")
    competency = create_competency("Testing", required_assessments=4)
    assert engine.open(competency.id, "S").ok
    return competency.id, "S"


# ---------------------------------------------------------------------------
# Open
# ---------------------------------------------------------------------------

class TestOpen:

    def test_open_creates_empty_record(self, engine, register, competency):
        register("S")

        result = engine.open(competency.id, "S", height=42)

        assert result.ok
        snap = result.value
        assert snap.assessors == ()
        assert snap.scores == ()
        assert snap.verified is False
        assert snap.opened_at == 42
        assert snap.state == AssessmentState.OPEN

    def test_open_reads_height_from_clock(self, engine, db, register, competency):
        register("S")

        result = engine.open(competency.id, "S")

        assert result.value.opened_at == LedgerClock(db).current_height()

    def test_unknown_competency(self, engine, register, competency):
        register("S")

        result = engine.open(99, "S")

        assert result.error == ErrorKind.INVALID_COMPETENCY_ID

    def test_unregistered_subject(self, engine, competency):
        result = engine.open(competency.id, "nobody")

        assert result.error == ErrorKind.NOT_REGISTERED

    def test_duplicate_request(self, engine, open_assessment):
        competency_id, subject = open_assessment

        result = engine.open(competency_id, subject)

        assert result.error == ErrorKind.ALREADY_ASSESSED


# ---------------------------------------------------------------------------
# Submit
# ---------------------------------------------------------------------------

class TestSubmit:

    def test_submit_appends_and_recomputes(self, engine, open_assessment):
        competency_id, subject = open_assessment

        engine.submit(competency_id, subject, "A", 80)
        result = engine.submit(competency_id, subject, "B", 75)

        assert result.ok
        assert result.value.assessors == ("A", "B")
        assert result.value.scores == (80, 75)
        assert result.value.mean_score == 77

    def test_self_assessment_forbidden(self, engine, open_assessment):
        competency_id, subject = open_assessment

        result = engine.submit(competency_id, subject, subject, 100)

        assert result.error == ErrorKind.NOT_AUTHORIZED
        assert engine.get_assessor_count(competency_id, subject).value == 0

    @pytest.mark.parametrize("score", [-1, 101, 1000])
    def test_score_out_of_range(self, engine, open_assessment, score):
        competency_id, subject = open_assessment

        result = engine.submit(competency_id, subject, "A", score)

        assert result.error == ErrorKind.SCORE_OUT_OF_RANGE

    @pytest.mark.parametrize("score", [0, 100])
    def test_score_bounds_accepted(self, engine, open_assessment, score):
        competency_id, subject = open_assessment

        assert engine.submit(competency_id, subject, "A", score).ok

    def test_duplicate_assessor(self, engine, open_assessment):
        competency_id, subject = open_assessment
        engine.submit(competency_id, subject, "A", 80)

        result = engine.submit(competency_id, subject, "A", 60)

        assert result.error == ErrorKind.ALREADY_ASSESSED
        assert engine.get_record(competency_id, subject).value.scores == (80,)

    def test_unregistered_assessor(self, engine, open_assessment):
        competency_id, subject = open_assessment

        result = engine.submit(competency_id, subject, "stranger", 80)

        assert result.error == ErrorKind.NOT_REGISTERED

    def test_unknown_competency(self, engine, open_assessment):
        _, subject = open_assessment

        result = engine.submit(7, subject, "A", 80)

        assert result.error == ErrorKind.INVALID_COMPETENCY_ID

    def test_no_open_record(self, engine, register, competency):
        register("S", "A")

        result = engine.submit(competency.id, "S", "A", 80)

        assert result.error == ErrorKind.ASSESSMENT_NOT_FOUND

    @pytest.mark.parametrize("score", [50.7, 80.0, "80", True, None])
    def test_non_integer_score_refused(self, engine, db, open_assessment, score):
        competency_id, subject = open_assessment

        result = engine.submit(competency_id, subject, "A", score)

        assert result.error == ErrorKind.SCORE_OUT_OF_RANGE
        assert db.query(Contribution).count() == 0

    def test_capacity_bound(self, engine, register, create_competency):
        competency_id = create_competency("Rust", required_assessments=20).id
        assessors = [f"peer-{i}" for i in range(21)]
        register("S", *assessors)
        engine.open(competency_id, "S")

        for assessor in assessors[:20]:
            assert engine.submit(competency_id, "S", assessor, 70).ok
        result = engine.submit(competency_id, "S", assessors[20], 70)

        assert result.error == ErrorKind.CAPACITY_EXCEEDED
        snap = engine.get_record(competency_id, "S").value
        assert len(snap.assessors) == len(snap.scores) == 20
        assert len(set(snap.assessors)) == 20

    def test_required_count_closes_submissions(self, engine, open_assessment):
        competency_id, subject = open_assessment
        _score_all(engine, open_assessment, {"A": 80, "B": 75, "C": 90})

        result = engine.submit(competency_id, subject, "D", 85)

        assert result.error == ErrorKind.CAPACITY_EXCEEDED
        assert engine.get_record(competency_id, subject).value.assessors == ("A", "B", "C")

    def test_low_requirement_still_reaches_minimum(self, engine, register, create_competency):
        competency_id = create_competency("SQL", required_assessments=1).id
        register("S", "A", "B", "C", "D")
        engine.open(competency_id, "S")

        _score_all(engine, (competency_id, "S"), {"A": 80, "B": 75, "C": 90})

        assert engine.submit(competency_id, "S", "D", 85).error == ErrorKind.CAPACITY_EXCEEDED
        assert engine.finalize(competency_id, "S").value.verified is True

    def test_submit_creates_skill_reputation(self, engine, open_assessment):
        competency_id, subject = open_assessment

        engine.submit(competency_id, subject, "A", 80)
        skill = engine.get_skill_reputation("A", competency_id).value

        assert (skill.reputation, skill.assessments_given, skill.valid_assessments_given) == (0, 0, 0)

    def test_submit_after_finalize(self, engine, open_assessment):
        _score_all(engine, open_assessment, {"A": 80, "B": 75, "C": 90})
        engine.finalize(*open_assessment)

        result = engine.submit(*open_assessment, "D", 80)

        assert result.error == ErrorKind.ALREADY_FINALIZED


# ---------------------------------------------------------------------------
# Finalize
# ---------------------------------------------------------------------------

class TestFinalize:

    def test_agreeing_high_scores_verify(self, engine, open_assessment):
        _score_all(engine, open_assessment, {"A": 80, "B": 75, "C": 90})

        result = engine.finalize(*open_assessment)

        assert result.ok
        outcome = result.value
        assert outcome.mean_score == 81
        assert outcome.verified is True
        assert [(u.participant, u.valid, u.delta) for u in outcome.updates] == [
            ("A", True, 2), ("B", True, 2), ("C", True, 2)
        ]
        for assessor in "ABC":
            assert engine.get_reputation(assessor).value == 2

    def test_agreement_rewarded_even_when_rejected(self, engine, open_assessment):
        _score_all(engine, open_assessment, {"A": 10, "B": 20, "C": 30})

        outcome = engine.finalize(*open_assessment).value

        assert outcome.mean_score == 20
        assert outcome.verified is False
        assert engine.get_record(*open_assessment).value.state == AssessmentState.REJECTED
        for assessor in "ABC":
            assert engine.get_reputation(assessor).value == 2

    def test_outlier_penalized_and_floored(self, engine, four_way_assessment):
        # mean 65: deviations 15, 10, 5, 30 -> A and D disagree
        _score_all(engine, four_way_assessment, {"A": 80, "B": 75, "C": 70, "D": 35})

        outcome = engine.finalize(*four_way_assessment).value

        assert outcome.mean_score == 65
        assert outcome.verified is False
        assert engine.get_reputation("A").value == 0
        assert engine.get_reputation("B").value == 2
        assert engine.get_reputation("C").value == 2
        assert engine.get_reputation("D").value == 0

    @pytest.mark.parametrize("count", [0, 1, 2])
    def test_insufficient_assessors(self, engine, open_assessment, count):
        _score_all(engine, open_assessment, dict(zip("ABC", [100, 100, 100][:count])))

        result = engine.finalize(*open_assessment)

        assert result.error == ErrorKind.INSUFFICIENT_ASSESSORS
        assert engine.get_record(*open_assessment).value.finalized is False

    def test_unknown_competency(self, engine, open_assessment):
        result = engine.finalize(5, open_assessment[1])

        assert result.error == ErrorKind.INVALID_COMPETENCY_ID

    def test_missing_record(self, engine, register, competency):
        register("T")

        result = engine.finalize(competency.id, "T")

        assert result.error == ErrorKind.ASSESSMENT_NOT_FOUND

    def test_second_finalize_refused_and_reputation_applied_once(self, engine, open_assessment):
        _score_all(engine, open_assessment, {"A": 80, "B": 75, "C": 90})
        engine.finalize(*open_assessment)

        result = engine.finalize(*open_assessment)

        assert result.error == ErrorKind.ALREADY_FINALIZED
        assert engine.get_reputation("A").value == 2

    def test_lifetime_and_skill_counters(self, engine, db, four_way_assessment):
        competency_id, subject = four_way_assessment
        _score_all(engine, four_way_assessment, {"A": 80, "B": 75, "C": 70, "D": 35})
        engine.finalize(competency_id, subject)

        d = db.get(Participant, "D")
        assert (d.total_assessments_given, d.invalid_assessments_given) == (1, 1)
        b = db.get(Participant, "B")
        assert (b.total_assessments_given, b.invalid_assessments_given) == (1, 0)

        skill = engine.get_skill_reputation("B", competency_id).value
        assert (skill.reputation, skill.assessments_given, skill.valid_assessments_given) == (2, 1, 1)
        skill = engine.get_skill_reputation("D", competency_id).value
        assert (skill.reputation, skill.assessments_given, skill.valid_assessments_given) == (0, 1, 0)

    def test_reputation_accumulates_across_subjects(self, engine, register, competency):
        register("S1", "S2", "A", "B", "C")
        for subject in ("S1", "S2"):
            engine.open(competency.id, subject)
            _score_all(engine, (competency.id, subject), {"A": 90, "B": 85, "C": 80})
            engine.finalize(competency.id, subject)

        assert engine.get_reputation("A").value == 4
        assert engine.get_skill_reputation("A", competency.id).value.assessments_given == 2


# ---------------------------------------------------------------------------
# Atomicity and reads
# ---------------------------------------------------------------------------

class TestAtomicity:

    def test_refused_call_leaves_height_and_rows_untouched(self, engine, db, open_assessment):
        competency_id, subject = open_assessment
        engine.submit(competency_id, subject, "A", 80)
        height = LedgerClock(db).current_height()

        result = engine.submit(competency_id, subject, "A", 90)

        assert not result.ok
        assert LedgerClock(db).current_height() == height
        assert db.query(Contribution).count() == 1

    def test_height_advances_per_committed_call(self, engine, db, open_assessment):
        competency_id, subject = open_assessment
        before = LedgerClock(db).current_height()

        engine.submit(competency_id, subject, "A", 80)
        engine.submit(competency_id, subject, "B", 80)

        assert LedgerClock(db).current_height() == before + 2


class TestReads:

    def test_get_record_is_stable_without_writes(self, engine, open_assessment):
        _score_all(engine, open_assessment, {"A": 61, "B": 77})

        assert engine.get_record(*open_assessment).value == engine.get_record(*open_assessment).value

    def test_get_record_missing(self, engine, competency):
        assert engine.get_record(competency.id, "ghost").error == ErrorKind.ASSESSMENT_NOT_FOUND

    def test_assessor_count(self, engine, open_assessment):
        _score_all(engine, open_assessment, {"A": 61, "B": 77})

        assert engine.get_assessor_count(*open_assessment).value == 2
        assert engine.get_assessor_count(0, "ghost").value == 0

    def test_assessor_count_unknown_competency(self, engine, open_assessment):
        _, subject = open_assessment

        assert engine.get_assessor_count(9, subject).error == ErrorKind.INVALID_COMPETENCY_ID

    def test_reputation_of_unregistered(self, engine):
        assert engine.get_reputation("ghost").error == ErrorKind.NOT_REGISTERED

    def test_skill_reputation_defaults_to_zero(self, engine, register, competency):
        register("A")

        skill = engine.get_skill_reputation("A", competency.id).value

        assert skill.reputation == 0
        assert skill.assessments_given == 0

    def test_skill_reputation_unknown_competency(self, engine, register, competency):
        register("A")

        assert engine.get_skill_reputation("A", 9).error == ErrorKind.INVALID_COMPETENCY_ID
