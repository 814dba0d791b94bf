"""
Tests for schedule expansion, log matching and the daily summary.
"""
from datetime import date, datetime, timezone

import pytest

from api.utils import hash_user_id_for_logging
from services.medication_schedule import (
    Medication,
    MedicationLog,
    MedicationStore,
    build_schedule,
    find_log,
    index_logs,
    is_valid_time,
    normalize_time,
    summarize,
)

TODAY = date(2024, 3, 10)
TAKEN_AT = datetime(2024, 3, 10, 8, 5, tzinfo=timezone.utc)
CREATED = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_medication(med_id="m1", name="Morning Vitamin", times=("08:00", "20:00")):
    return Medication(
        id=med_id,
        name=name,
        dosage="1 tablet",
        times=list(times),
        created_at=CREATED,
    )


def make_log(med_id="m1", time="08:00:00", on_date=TODAY, taken=False, skipped=False, user_id=None):
    return MedicationLog(
        medication_id=med_id,
        scheduled_time=time,
        scheduled_date=on_date,
        user_id=user_id,
        taken_at=TAKEN_AT if taken else None,
        skipped=skipped,
    )


class TestTimeHelpers:
    def test_normalize_appends_seconds(self):
        assert normalize_time("08:00") == "08:00:00"

    def test_normalize_keeps_full_time(self):
        assert normalize_time("08:00:00") == "08:00:00"

    def test_normalize_leaves_other_lengths_alone(self):
        assert normalize_time("8:00") == "8:00"

    @pytest.mark.parametrize("value", ["00:00", "23:59", "08:00:30"])
    def test_valid_times(self, value):
        assert is_valid_time(value)

    @pytest.mark.parametrize("value", ["", "24:00", "8:00", "08:60", "noon"])
    def test_invalid_times(self, value):
        assert not is_valid_time(value)


class TestBuildSchedule:
    def test_expands_each_time_into_a_slot(self):
        slots = build_schedule([make_medication()], [], TODAY)
        assert [(s.medication.id, s.time) for s in slots] == [("m1", "08:00"), ("m1", "20:00")]

    def test_sorted_by_time_across_medications(self):
        evening = make_medication("m1", times=["21:00"])
        morning = make_medication("m2", times=["07:30"])
        slots = build_schedule([evening, morning], [], TODAY)
        assert [s.time for s in slots] == ["07:30", "21:00"]

    def test_same_time_keeps_collection_order(self):
        first = make_medication("a", name="First", times=["08:00"])
        second = make_medication("b", name="Second", times=["08:00"])
        slots = build_schedule([first, second], [], TODAY)
        assert [s.medication.id for s in slots] == ["a", "b"]

    def test_mixed_time_formats_sort_by_normalized_value(self):
        med = make_medication(times=["09:00:00", "08:30"])
        slots = build_schedule([med], [], TODAY)
        assert [s.time for s in slots] == ["08:30", "09:00:00"]

    def test_medication_without_times_contributes_nothing(self):
        slots = build_schedule([make_medication(times=[])], [], TODAY)
        assert slots == []

    def test_log_matches_short_and_long_time_forms(self):
        slots = build_schedule([make_medication()], [make_log(time="08:00:00", taken=True)], TODAY)
        assert slots[0].state == "taken"
        assert slots[1].state == "pending"

    def test_log_for_another_date_does_not_match(self):
        log = make_log(on_date=date(2024, 3, 9), taken=True)
        slots = build_schedule([make_medication()], [log], TODAY)
        assert all(s.state == "pending" for s in slots)

    def test_log_for_another_user_does_not_match(self):
        log = make_log(taken=True, user_id="someone-else")
        slots = build_schedule([make_medication()], [log], TODAY, user_id="me")
        assert slots[0].log is None

    def test_duplicate_logs_latest_wins(self):
        logs = [make_log(skipped=True), make_log(taken=True)]
        slots = build_schedule([make_medication()], logs, TODAY)
        assert slots[0].state == "taken"


class TestLogIndex:
    def test_duplicate_warning_hashes_medication_id(self, caplog):
        med_id = "secret-medication-id"

        with caplog.at_level("WARNING", logger="wellness-api.medication_schedule"):
            index_logs([make_log(med_id), make_log(med_id, taken=True)])

        assert "Duplicate medication log" in caplog.text
        assert med_id not in caplog.text
        assert hash_user_id_for_logging(med_id) in caplog.text

    def test_find_log_normalizes_query_time(self):
        index = index_logs([make_log(time="20:00:00", skipped=True)])
        assert find_log(index, "m1", "20:00", TODAY) is not None
        assert find_log(index, "m1", "08:00", TODAY) is None

    def test_taken_wins_over_skipped(self):
        log = make_log(taken=True, skipped=True)
        assert log.state == "taken"


class TestSummarize:
    def test_two_pending_slots(self):
        summary = summarize(build_schedule([make_medication()], [], TODAY))
        assert (summary.completed, summary.skipped, summary.pending) == (0, 0, 2)
        assert summary.total == 2
        assert summary.completion_percentage == 0.0

    def test_one_taken(self):
        slots = build_schedule([make_medication()], [make_log(taken=True)], TODAY)
        summary = summarize(slots)
        assert (summary.completed, summary.skipped, summary.pending) == (1, 0, 1)
        assert summary.completion_percentage == 50.0

    def test_one_skipped(self):
        slots = build_schedule([make_medication()], [make_log(skipped=True)], TODAY)
        summary = summarize(slots)
        assert (summary.completed, summary.skipped, summary.pending) == (0, 1, 1)

    def test_counts_add_up_to_total(self):
        meds = [make_medication("a", times=["08:00", "12:00"]), make_medication("b", times=["08:00"])]
        logs = [make_log("a", "08:00:00", taken=True), make_log("b", "08:00:00", skipped=True)]
        summary = summarize(build_schedule(meds, logs, TODAY))
        assert summary.completed + summary.skipped + summary.pending == summary.total == 3

    def test_empty_schedule(self):
        summary = summarize([])
        assert summary.total == 0
        assert summary.completion_percentage == 0.0


class TestMedicationStore:
    def test_put_log_replaces_same_key(self):
        store = MedicationStore()
        store.add_medication(make_medication())
        store.put_log(make_log(skipped=True))
        store.put_log(make_log(time="08:00", taken=True))
        assert len(store.logs()) == 1
        assert store.logs()[0].state == "taken"

    def test_remove_medication_cascades_logs(self):
        store = MedicationStore()
        store.add_medication(make_medication("a"))
        store.add_medication(make_medication("b"))
        store.put_log(make_log("a", taken=True))
        store.put_log(make_log("b", skipped=True))

        store.remove_medication("a")

        assert [m.id for m in store.medications()] == ["b"]
        assert [log.medication_id for log in store.logs()] == ["b"]

    def test_unknown_medication_raises_key_error(self):
        store = MedicationStore()
        with pytest.raises(KeyError):
            store.get_medication("missing")
        with pytest.raises(KeyError):
            store.remove_medication("missing")

    def test_schedule_reused_until_a_write(self):
        store = MedicationStore()
        store.add_medication(make_medication())
        revision = store.revision

        first = store.schedule(TODAY)
        second = store.schedule(TODAY)
        assert first[0] is second[0]
        assert store.revision == revision

        store.put_log(make_log(taken=True))
        third = store.schedule(TODAY)
        assert store.revision == revision + 1
        assert third[0].state == "taken"

    def test_replace_medication_changes_slots(self):
        store = MedicationStore()
        store.add_medication(make_medication())
        store.replace_medication(make_medication(times=["06:00"]))
        assert [s.time for s in store.schedule(TODAY)] == ["06:00"]

    def test_load_replaces_everything(self):
        store = MedicationStore(user_id="u1")
        store.add_medication(make_medication("old"))
        store.load([make_medication("new")], [])
        assert store.loaded
        assert [m.id for m in store.medications()] == ["new"]
