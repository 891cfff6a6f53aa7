"""No-input detection over inbound recognition events.

The service keeps a non-final segment open while it waits for speech to
finish. A segment held open longer than the threshold is read as dead air
and ends the session early. Each decision depends on the current event only.
"""

import logging
from dataclasses import dataclass

from .types import Decision, RecognitionEvent, StreamingResult

logger = logging.getLogger(__name__)

NO_INPUT_THRESHOLD_SECONDS = 3.0


@dataclass(frozen=True)
class NoInputPolicy:
    """Tunables of the no-input heuristic.

    Attributes:
        threshold_seconds: Open segment span that counts as silence (strictly greater)
        first_result_only: Inspect only the first result of each event

    """

    threshold_seconds: float = NO_INPUT_THRESHOLD_SECONDS
    first_result_only: bool = True

    def __post_init__(self):
        if self.threshold_seconds < 0:
            raise ValueError(f"threshold_seconds must be >= 0, got {self.threshold_seconds}")


class RecognitionConsumer:
    """Classify recognition events as continue, ignore or stop."""

    def __init__(self, policy: NoInputPolicy | None = None):
        self.policy = policy or NoInputPolicy()

    def on_event(self, event: RecognitionEvent) -> Decision:
        if not event.results:
            return Decision.IGNORE

        results = event.results[:1] if self.policy.first_result_only else event.results
        decision = Decision.IGNORE
        for result in results:
            verdict = self._classify(result)
            if verdict is Decision.STOP_NO_INPUT_TIMEOUT:
                return verdict
            if verdict is Decision.CONTINUE:
                decision = Decision.CONTINUE
        return decision

    def _classify(self, result: StreamingResult) -> Decision:
        payload = result.recognition_result
        if payload is None or payload.start_time is None or payload.end_time is None:
            return Decision.IGNORE

        gap = payload.end_time - payload.start_time
        if gap > self.policy.threshold_seconds and not result.is_final:
            logger.info(
                f"No input: non-final segment open for {gap:.2f}s "
                f"(threshold {self.policy.threshold_seconds:.2f}s)"
            )
            return Decision.STOP_NO_INPUT_TIMEOUT
        return Decision.CONTINUE

    @staticmethod
    def final_transcripts(event: RecognitionEvent) -> list[str]:
        """Top hypotheses of the final results carried by an event."""
        return [
            result.recognition_result.transcript
            for result in event.results
            if result.is_final and result.recognition_result is not None and result.recognition_result.transcript
        ]


__all__ = ["NO_INPUT_THRESHOLD_SECONDS", "NoInputPolicy", "RecognitionConsumer"]
