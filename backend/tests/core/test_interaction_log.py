"""Tests for core/interaction_log.py."""

import json

from core.interaction_log import InteractionLog
from core.models import DialogueStage, InteractionRecord, InteractionStatus


def _record(session_id="s1", agent_id="poet", status=InteractionStatus.SUCCESS, **fields):
    return InteractionRecord(
        session_id=session_id,
        agent_id=agent_id,
        stage=DialogueStage.INDIVIDUAL_THOUGHT,
        status=status,
        **fields,
    )


class TestInteractionLog:
    """Tests for the in-memory store."""

    def test_record_and_query(self):
        log = InteractionLog()
        log.record(_record(agent_id="poet"))
        log.record(_record(agent_id="critic"))
        log.record(_record(session_id="s2"))

        assert len(log.for_session("s1")) == 2
        assert [r.agent_id for r in log.for_agent("s1", "critic")] == ["critic"]
        assert log.for_session("missing") == []

    def test_success_counts(self):
        log = InteractionLog()
        log.record(_record(agent_id="poet"))
        log.record(_record(agent_id="poet", status=InteractionStatus.ERROR))
        log.record(_record(agent_id="critic", status=InteractionStatus.TIMEOUT))

        assert log.success_counts("s1", "poet") == (1, 2)
        assert log.success_counts("s1") == (1, 3)
        assert log.success_counts("missing") == (0, 0)

    def test_load_skips_known_records(self):
        log = InteractionLog()
        record = log.record(_record())

        log.load([record, _record(agent_id="critic")])

        assert len(log.for_session("s1")) == 2

    def test_clear(self):
        log = InteractionLog()
        log.record(_record())
        log.clear("s1")

        assert log.for_session("s1") == []

    def test_returned_lists_are_copies(self):
        log = InteractionLog()
        log.record(_record())

        log.for_session("s1").clear()

        assert len(log.for_session("s1")) == 1


class TestInteractionLogFiles:
    """Tests for JSON file output."""

    def test_writes_per_agent_file(self, tmp_path):
        log = InteractionLog(tmp_path)
        log.record(_record(output="first"))
        log.record(_record(output="second"))

        path = tmp_path / "s1" / "individual-thought" / "poet.json"
        data = json.loads(path.read_text())
        assert [entry["output"] for entry in data] == ["first", "second"]

    def test_write_failure_keeps_memory_record(self, tmp_path):
        blocker = tmp_path / "blocked"
        blocker.write_text("not a directory")
        log = InteractionLog(blocker)

        log.record(_record())

        assert len(log.for_session("s1")) == 1
