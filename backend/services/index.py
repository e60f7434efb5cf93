# services/index.py
"""
Corpus Index
------------
Pre-tokenizes every report title once and keeps the keyword statistics
the trend endpoints aggregate over.

Data Structures:
1. Token sets: HashMap<ReportID, Tuple<Token>> (deduplicated, first-seen order)
2. Keyword counts: HashMap<Token, Integer> (reports containing the token)
3. Keyword year counts: HashMap<Token, HashMap<Year, Integer>>

A keyword is counted once per report, never per raw occurrence.
Reports without a year are counted in kw_count only.

The index is never patched: a stopword change builds a new one.

Complexity:
- Build: O(N * Avg_Tokens)
- Token-set lookup: O(1)
"""

import logging
import time
from types import MappingProxyType

from backend.services.tokenizer import TokenizationAdapter

logger = logging.getLogger(__name__)


def _bump(counter, key):
    counter[key] = counter.get(key, 0) + 1


class CorpusIndex:
    """Read-only view of one tokenization of the corpus. Build with `build_index`."""

    def __init__(self, reports, directory, stopwords, tokens_by_id, token_set_by_id,
                 kw_count, kw_year_count, reports_per_year, reports_per_institute):
        self.reports = tuple(reports)
        self.directory = directory
        self.stopwords = frozenset(stopwords)
        self.tokens_by_id = MappingProxyType(tokens_by_id)
        self.token_set_by_id = MappingProxyType(token_set_by_id)
        self.kw_count = MappingProxyType(kw_count)
        self.kw_year_count = MappingProxyType(
            {k: MappingProxyType(m) for k, m in kw_year_count.items()}
        )
        self.reports_per_year = MappingProxyType(reports_per_year)
        self.reports_per_institute = MappingProxyType(reports_per_institute)
        self.years = sorted(y for y in reports_per_year if y is not None)
        self.institutes = sorted(reports_per_institute)
        self._member_sets = {rid: frozenset(toks) for rid, toks in token_set_by_id.items()}

    def token_set(self, report_id):
        """Ordered, deduplicated tokens of a report's title."""
        return self.token_set_by_id.get(report_id, ())

    def has_token(self, report_id, token):
        return token in self._member_sets.get(report_id, ())

    def reports_in_scope(self, scope="all"):
        if scope in ("local", "national"):
            return [r for r in self.reports if r.scope == scope]
        return list(self.reports)

    def resolve_group(self, institute, scope):
        if self.directory is None:
            return None
        return self.directory.resolve_group(institute, scope)

    def __len__(self):
        return len(self.reports)


def build_index(reports, stopwords=frozenset(), directory=None, tokenizer=None):
    """
    BuildIndex(reports, stopwords) -> CorpusIndex

    Pure and deterministic: identical inputs give identical counts,
    identical token order and identical year lists.
    """
    started = time.perf_counter()
    adapter = tokenizer if isinstance(tokenizer, TokenizationAdapter) else TokenizationAdapter(tokenizer)
    stopwords = frozenset(stopwords or ())

    tokens_by_id = {}
    token_set_by_id = {}
    kw_count = {}
    kw_year_count = {}
    reports_per_year = {}
    reports_per_institute = {}

    for r in reports:
        toks = adapter.tokens(r.title, stopwords)
        uniq = tuple(dict.fromkeys(toks))
        tokens_by_id[r.id] = tuple(toks)
        token_set_by_id[r.id] = uniq

        _bump(reports_per_year, r.year)
        _bump(reports_per_institute, r.institute)

        for kw in uniq:
            _bump(kw_count, kw)
            if r.year is not None:
                _bump(kw_year_count.setdefault(kw, {}), r.year)

    index = CorpusIndex(
        reports, directory, stopwords, tokens_by_id, token_set_by_id,
        kw_count, kw_year_count, reports_per_year, reports_per_institute,
    )
    logger.info(
        "Indexed %d reports: %d keywords, %d years, %d stopwords (%.0f ms)",
        len(index), len(kw_count), len(index.years), len(stopwords),
        (time.perf_counter() - started) * 1000,
    )
    return index
