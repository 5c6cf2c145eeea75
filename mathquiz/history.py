"""Persisted history of completed quiz attempts."""

import json
import logging
from typing import List

from pydantic import ValidationError

from .models import QuizAttemptRecord
from .storage import KeyValueStore

logger = logging.getLogger(__name__)

HISTORY_STORE_KEY = "math_quiz_history"


class QuizHistory:
    """Newest-first list of QuizAttemptRecord kept under one store key."""

    def __init__(self, store: KeyValueStore, key: str = HISTORY_STORE_KEY):
        self.store = store
        self.key = key

    def list(self) -> List[QuizAttemptRecord]:
        """Return all recorded attempts, newest first.

        A corrupted history value reads as empty rather than failing; records
        that no longer validate are skipped.
        """
        raw = self.store.get(self.key)
        if not raw:
            return []

        try:
            items = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse history: {e}")
            return []

        if not isinstance(items, list):
            logger.error("History value is not a list, ignoring it")
            return []

        records: List[QuizAttemptRecord] = []
        for item in items:
            try:
                records.append(QuizAttemptRecord.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping invalid history record: {e}")
        return records

    def append(self, record: QuizAttemptRecord) -> List[QuizAttemptRecord]:
        """Record a completed attempt at the head of the history.

        Returns:
            The updated history
        """
        records = [record] + self.list()
        self._write(records)
        logger.info(
            f"Recorded attempt {record.id}: {record.score}/{record.total_questions} "
            f"(grade {record.grade}, {record.topic})"
        )
        return records

    def clear(self) -> None:
        """Delete every recorded attempt."""
        self.store.remove(self.key)
        logger.info("Cleared quiz history")

    def _write(self, records: List[QuizAttemptRecord]) -> None:
        payload = [r.to_storage() for r in records]
        self.store.set(self.key, json.dumps(payload, ensure_ascii=False))
