"""Abstract base class for result reporters."""

from abc import ABC, abstractmethod

from boostsec.api_test_runner.collector import ResultCollector


class Reporter(ABC):
    """Abstract base for result reporters."""

    @abstractmethod
    async def report(self, collector: ResultCollector) -> None:
        """Publish the results of a finished run.

        Args:
            collector: Collector holding the run's results

        """
