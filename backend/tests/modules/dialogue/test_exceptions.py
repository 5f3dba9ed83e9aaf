"""Tests for dialogue module exceptions."""

from modules.dialogue.exceptions import (
    DialogueError,
    InvalidStageTransitionError,
    ReasonerUnavailableError,
    SessionAbortedError,
    SessionClosedError,
    SessionNotFoundError,
    StageConflictError,
    StageExecutionError,
)
from shared.exceptions import (
    ExternalServiceError,
    NotFoundError,
    PolyphonyError,
    ValidationError,
)


class TestDialogueError:
    def test_dialogue_error(self):
        """Should create a base dialogue error."""
        error = DialogueError("Something went wrong", code="DIALOGUE_ERROR")
        assert str(error) == "Something went wrong"
        assert error.code == "DIALOGUE_ERROR"
        assert isinstance(error, PolyphonyError)

    def test_default_code_is_class_name(self):
        assert DialogueError("x").code == "DialogueError"

    def test_to_dict(self):
        error = DialogueError("Test error", code="TEST", details={"key": "value"})
        result = error.to_dict()
        assert result == {"error": "TEST", "message": "Test error", "details": {"key": "value"}}


class TestSessionNotFoundError:
    def test_session_not_found_error(self):
        error = SessionNotFoundError("session-123")
        assert "Session not found" in str(error)
        assert error.code == "SESSION_NOT_FOUND"
        assert error.details["session_id"] == "session-123"
        assert isinstance(error, NotFoundError)


class TestStageErrors:
    def test_stage_conflict(self):
        error = StageConflictError("s1")
        assert error.code == "STAGE_CONFLICT"
        assert isinstance(error, ValidationError)

    def test_invalid_transition(self):
        error = InvalidStageTransitionError(
            "s1",
            None,
            "synthesis-attempt",
            expected_stage="individual-thought",
        )
        assert "after start" in str(error)
        assert error.details["requested_stage"] == "synthesis-attempt"
        assert error.details["expected_stage"] == "individual-thought"

    def test_session_closed(self):
        error = SessionClosedError("s1", "concluded")
        assert "concluded" in str(error)
        assert error.details["status"] == "concluded"

    def test_session_aborted(self):
        error = SessionAbortedError("s1", reason="user request")
        assert error.code == "SESSION_ABORTED"
        assert error.details["reason"] == "user request"

    def test_stage_execution(self):
        error = StageExecutionError("s1", "finalize", "boom")
        assert "finalize" in str(error)
        assert error.details["original_error"] == "boom"
        assert isinstance(error, DialogueError)


class TestReasonerUnavailableError:
    def test_reasoner_unavailable(self):
        error = ReasonerUnavailableError("poet")
        assert isinstance(error, ExternalServiceError)
        assert error.service == "reasoner"
        assert error.details == {"agent_id": "poet", "service": "reasoner"}
