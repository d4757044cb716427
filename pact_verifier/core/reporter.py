"""
Aggregation and reporting of verification results.

Counters and per-consumer success flags are updated in interaction order,
and every update is paired with its report line, so the report reads the
same on every run over the same pacts.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from .schemas import ConsumerOutcome, Interaction, InteractionResult, MatchResult, RunOutcome

logger = logging.getLogger(__name__)
report_logger = logging.getLogger("pact_verifier.report")

PASS_MARK = "√"
FAIL_MARK = "X"


class VerificationReporter:
    """Accumulates the RunOutcome and emits the line-oriented report."""

    def __init__(self, provider: str, report_path: Optional[Path] = None):
        self.outcome = RunOutcome(provider=provider)
        self.report_path = report_path

    def start(self) -> None:
        report_logger.info("Provider Verification: ")

    def start_consumer(self, consumer: str, version: str) -> ConsumerOutcome:
        report_logger.info("")
        report_logger.info(f"  Consumer: {consumer} - {version}")
        consumer_outcome = ConsumerOutcome(consumer=consumer, version=version)
        self.outcome.consumers.append(consumer_outcome)
        return consumer_outcome

    def provider_states(self, states: List[str]) -> None:
        report_logger.info("")
        report_logger.info(f"   - Provider State: {', '.join(states) if states else 'none'}")

    def record(
        self,
        consumer: ConsumerOutcome,
        interaction: Interaction,
        result: MatchResult
    ) -> InteractionResult:
        """
        Record the result of one interaction.

        A non-equal result marks the owning consumer as failed.
        """
        self.outcome.total += 1
        if result.equal:
            self.outcome.passed += 1
            report_logger.info(f"     {PASS_MARK} {interaction.description}")
        else:
            self.outcome.failed += 1
            consumer.success = False
            report_logger.info(f"     {FAIL_MARK} {interaction.description}")
            report_logger.error(f"       {result.message}")

        interaction_result = InteractionResult(
            description=interaction.description,
            equal=result.equal,
            provider_states=interaction.provider_states,
            message=result.message,
            path=result.path,
        )
        consumer.results.append(interaction_result)
        return interaction_result

    def finish(self) -> RunOutcome:
        """Print the summary and, if configured, write the JSON report."""
        self.outcome.finished_at = datetime.now(timezone.utc).isoformat()
        report_logger.info("")
        report_logger.info(f" {self.outcome.passed} passing")
        if self.outcome.failed > 0:
            report_logger.info(f" {self.outcome.failed} failing")

        if self.report_path:
            self.write_report(self.report_path)
        return self.outcome

    def write_report(self, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.outcome.to_dict(), f, indent=2, ensure_ascii=False)
        logger.info(f"Verification report written to: {path}")
        return path
