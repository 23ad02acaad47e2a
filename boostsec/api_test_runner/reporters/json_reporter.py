"""Reporter writing the collected results as JSON."""

import logging
from pathlib import Path

from boostsec.api_test_runner.collector import ResultCollector
from boostsec.api_test_runner.reporters.base import Reporter

logger = logging.getLogger(__name__)


class JsonReporter(Reporter):
    """Writes ``CollectedResults`` to a file."""

    def __init__(self, output_path: Path) -> None:
        """Initialize reporter with its output file."""
        self.output_path = output_path

    async def report(self, collector: ResultCollector) -> None:
        """Write the run's results."""
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        self.output_path.write_text(
            collector.get_results().model_dump_json(indent=2), encoding="utf-8"
        )
        logger.info(f"JSON report written to {self.output_path}")
