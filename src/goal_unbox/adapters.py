"""Console-grade implementations of the collaborator ports."""
import re
from pathlib import Path

from loguru import logger

from goal_unbox.config import DEFAULT_RULES
from goal_unbox.errors import ExternalServiceError, ExtractionError
from goal_unbox.models import VerificationFeedback, VerificationResult
from goal_unbox.ports import truncate_summary

CODE_PATTERN = re.compile(r"(?<!\d)(\d{3})(?!\d)")


class DigitCodeReader:
    """Finds a three-digit lock code in typed text or a text file."""

    def extract_code(self, image) -> str:
        if isinstance(image, bytes):
            text = image.decode("utf-8", errors="ignore")
        else:
            text = str(image or "")
            path = Path(text.strip())
            if text.strip() and path.is_file():
                text = path.read_text(errors="ignore")
        match = CODE_PATTERN.search(text)
        if match is None:
            raise ExtractionError("No 3-digit code found. Try again with the code clearly visible.")
        logger.debug("Code read")
        return match.group(1)


class ConfirmingVerifier:
    """Asks a human (via ``confirm``) whether the proof shows the goal is done.

    ``confirm(goal_description, proof)`` returns a bool.
    """

    def __init__(self, confirm):
        self.confirm = confirm
        self._last_goal: str | None = None

    def verify(self, goal_description: str, proof) -> VerificationResult:
        self._last_goal = goal_description
        return self._judge(goal_description, proof)

    def follow_up(self, message: str) -> VerificationResult:
        if self._last_goal is None:
            raise ExternalServiceError("Nothing has been verified yet")
        return self._judge(self._last_goal, message)

    def _judge(self, goal_description: str, proof) -> VerificationResult:
        approved = bool(self.confirm(goal_description, proof))
        if approved:
            feedback = VerificationFeedback(summary="Proof accepted.", approved_aspects=(str(proof),))
        else:
            feedback = VerificationFeedback(
                summary="Proof does not show the goal is done yet.",
                missing_aspects=(goal_description,),
            )
        return VerificationResult(completed=approved, feedback=feedback)


class TruncatingSummarizer:
    def __init__(self, max_length: int = DEFAULT_RULES.summary_max_length):
        self.max_length = max_length

    def summarize(self, goal_description: str) -> str:
        first_line = goal_description.strip().splitlines()[0] if goal_description.strip() else ""
        return truncate_summary(first_line, self.max_length)
