"""Exception hierarchy for the goal engine."""


class GoalUnboxError(Exception):
    pass


class ValidationError(GoalUnboxError):
    """A guard failed; no transition happened."""


class StateError(GoalUnboxError):
    """The intent is not accepted in the current session state."""


class ExternalServiceError(GoalUnboxError):
    """A collaborator call (verification, extraction, summarization) failed."""


class ExtractionError(ExternalServiceError):
    pass


class InvariantViolation(GoalUnboxError):
    pass


class StaleResponse(GoalUnboxError):
    """A collaborator answered a request that has since been superseded."""

    def __init__(self, seq: int | None, current: int | None):
        self.seq = seq
        self.current = current
        super().__init__(f"response #{seq} superseded by request #{current}")
