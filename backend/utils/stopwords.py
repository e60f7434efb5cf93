# utils/stopwords.py
"""
Stopword store
--------------
Admin-managed stopwords applied to every trend analytic and to researcher
profiling. Persisted in DATA_DIR/stopwords.json, accepted as either
{"words": [...]} or a bare list. Always written back as {"words": [...]}.
"""

import json
import logging
import os

logger = logging.getLogger(__name__)

STOPWORDS_FILE = "stopwords.json"


def normalize_stopword(word):
    return str(word or "").strip().lower()


def normalize_stopwords(words):
    """Normalize, drop empties and deduplicate. Returns a sorted list."""
    return sorted({normalize_stopword(w) for w in (words or []) if normalize_stopword(w)})


class StopwordStore:
    """
    File-backed stopword set.

    `path=None` keeps the set in memory only (used by tests and by
    callers that manage persistence themselves).
    """

    def __init__(self, path=None, words=None):
        self.path = path
        self._words = frozenset(normalize_stopwords(words))
        if path and words is None:
            self._words = frozenset(self._read())

    @classmethod
    def in_data_dir(cls, data_dir: str):
        return cls(os.path.join(data_dir, STOPWORDS_FILE))

    def _read(self):
        if not self.path or not os.path.exists(self.path):
            return []
        with open(self.path, "r", encoding="utf-8") as f:
            parsed = json.load(f)

        if isinstance(parsed, list):
            words = parsed
        elif isinstance(parsed, dict) and isinstance(parsed.get("words"), list):
            words = parsed["words"]
        else:
            logger.warning("Ignoring unrecognized stopword file layout in %s", self.path)
            words = []
        return normalize_stopwords(words)

    def words(self) -> frozenset:
        return self._words

    def replace(self, words):
        """
        Replace the whole set and persist it.

        Returns:
            list: the normalized, sorted words that were stored
        """
        uniq = normalize_stopwords(words)
        if self.path:
            os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump({"words": uniq}, f, ensure_ascii=False, indent=2)
        self._words = frozenset(uniq)
        logger.info("Stored %d stopwords", len(uniq))
        return uniq
