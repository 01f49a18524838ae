"""JSON file storage for search result history."""

import json
from collections.abc import Iterable
from pathlib import Path

import structlog

from tracker.models import SearchResult

logger = structlog.get_logger(__name__)

# Most recent results kept on disk
DEFAULT_MAX_RESULTS = 1000


class ResultStore:
    """Stores search results as a single JSON array on disk."""

    def __init__(self, path: Path | str):
        """
        Initialize storage.

        Args:
            path: File holding the result history
        """
        self.path = Path(path)

    def load(self) -> list[SearchResult]:
        """
        Load all stored results.

        A missing or unreadable file yields none; individual records that
        cannot be read are skipped and logged.
        """
        if not self.path.exists():
            return []

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("results_load_failed", path=str(self.path), error=str(e))
            return []

        if not isinstance(data, list):
            logger.warning("results_file_malformed", path=str(self.path))
            return []

        results: list[SearchResult] = []
        for index, item in enumerate(data):
            try:
                if not isinstance(item, dict):
                    raise TypeError(f"expected an object, got {type(item).__name__}")
                results.append(SearchResult.from_dict(item))
            except (TypeError, ValueError, AttributeError) as e:
                logger.warning(
                    "results_item_skipped", path=str(self.path), index=index, error=str(e)
                )
        return results

    def save(self, results: Iterable[SearchResult]) -> None:
        """Overwrite the stored history."""
        payload = [r.to_dict() for r in results]
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        logger.debug("results_saved", path=str(self.path), count=len(payload))

    def append(
        self,
        results: Iterable[SearchResult],
        max_results: int = DEFAULT_MAX_RESULTS,
    ) -> list[SearchResult]:
        """
        Append results to the history, keeping only the most recent ones.

        Args:
            results: New results, oldest first
            max_results: Number of results to retain (oldest are dropped)

        Returns:
            The retained history
        """
        history = self.load() + list(results)
        if len(history) > max_results:
            history = history[-max_results:] if max_results > 0 else []
        self.save(history)
        return history
