# services/engine.py
"""
Analytics Engine
----------------
Owns the one published Snapshot (index + researcher models + result cache)
and rebuilds it copy-on-write when stopwords change.

Readers call `engine.snapshot()` once per request and use only that object.
A rebuild constructs a complete new Snapshot off to the side and swaps the
reference under a lock; requests already holding the old snapshot finish
against it. Nothing in a published snapshot is mutated except its cache and
its lazily built per-scope researcher models.
"""

import logging
from threading import Lock

from backend.services import analytics, ranking
from backend.services.index import build_index
from backend.services.researchers import build_researcher_model
from backend.services.search import as_filter, normalize_scope, search_reports, select_reports
from backend.services.tokenizer import TokenizationAdapter
from backend.utils.cache import CacheKey, GenerationCache
from backend.utils.errors import InputError, RebuildError
from backend.utils.stopwords import StopwordStore, normalize_stopwords

logger = logging.getLogger(__name__)


class Snapshot:
    """One immutable index generation plus everything cached against it."""

    def __init__(self, generation, index, tokenizer, cache_maxsize=2048, cache_ttl=0.0):
        self.generation = generation
        self.index = index
        self.tokenizer = tokenizer
        self.cache = GenerationCache(generation, maxsize=cache_maxsize, ttl=cache_ttl)
        self._models = {}
        self._models_lock = Lock()

    def _cached(self, op, filters, params, compute):
        return self.cache.get_or_compute(CacheKey(op, filters.key() if filters else None, params), compute)

    # -- filter engine -----------------------------------------------------

    def view(self, filters=None):
        f = as_filter(filters)
        return self._cached("view", f, (), lambda: select_reports(self.index, f))

    def aggregate(self, filters=None):
        f = as_filter(filters)
        return self._cached("agg", f, (), lambda: analytics.aggregate(self.index, self.view(f)))

    def search_reports(self, filters=None, limit=50, offset=0):
        return search_reports(self.index, as_filter(filters), limit=limit, offset=offset)

    # -- aggregation library ---------------------------------------------

    def keyword_stats(self, filters=None, top=200):
        f = as_filter(filters)
        return self._cached("kwStats", f, (str(top),), lambda: analytics.keyword_stats(
            self.index, self.view(f), top=top, agg=self.aggregate(f)))

    def keyword_series(self, keyword, filters=None):
        f = as_filter(filters)
        kw = str(keyword or "").strip()
        if not kw:
            raise InputError("keyword")
        return self._cached("kwSeries", f, (kw,), lambda: analytics.keyword_series(
            self.index, self.view(f), kw, agg=self.aggregate(f)))

    def top5_trends(self, filters=None):
        f = as_filter(filters)
        return self._cached("top5Trends", f, (), lambda: analytics.top5_trends(
            self.index, self.view(f), agg=self.aggregate(f)))

    def rising_keywords(self, filters=None, top=20):
        f = as_filter(filters)
        return self._cached("rising", f, (str(top),), lambda: analytics.rising_keywords(
            self.index, self.view(f), top=top, agg=self.aggregate(f)))

    def burst_keywords(self, filters=None, top=20):
        f = as_filter(filters)
        return self._cached("burst", f, (str(top),), lambda: analytics.burst_keywords(
            self.index, self.view(f), top=top, agg=self.aggregate(f)))

    def word_cloud(self, filters=None, top=50):
        f = as_filter(filters)
        return self._cached("wordcloud", f, (str(top),), lambda: analytics.word_cloud(
            self.index, self.view(f), top=top, agg=self.aggregate(f)))

    def network(self, filters=None, top_keywords=120, edge_top=400):
        f = as_filter(filters)
        return self._cached("net", f, (str(top_keywords), str(edge_top)), lambda: analytics.cooccurrence_network(
            self.index, self.view(f), top_keywords_n=top_keywords, edge_top=edge_top, agg=self.aggregate(f)))

    def heatmap(self, filters=None, top_keywords=30):
        f = as_filter(filters)
        return self._cached("heat", f, (str(top_keywords),), lambda: analytics.institute_heatmap(
            self.index, self.view(f), top_keywords_n=top_keywords, agg=self.aggregate(f)))

    def related_reports(self, keyword, filters=None, limit=50):
        return analytics.related_reports(self.index, self.view(filters), keyword, limit=limit)

    # -- researchers -----------------------------------------------------

    def researcher_model(self, scope="all"):
        scope = normalize_scope(scope)
        model = self._models.get(scope)
        if model is not None:
            return model
        # one build per scope; a concurrent reader waits instead of rebuilding
        with self._models_lock:
            model = self._models.get(scope)
            if model is None:
                model = build_researcher_model(self.index, scope)
                self._models[scope] = model
        return model

    def search_researchers(self, query="", scope="all", institute=None, sort="relevance", limit=24, offset=0):
        scope = normalize_scope(scope)
        params = (str(query or "").strip(), str(institute or "").strip(), str(sort or ""), str(limit), str(offset))
        return self.cache.get_or_compute(
            CacheKey("researchers", (scope,), params),
            lambda: ranking.search_researchers(
                self.researcher_model(scope), query, institute=institute, sort=sort,
                limit=limit, offset=offset, stopwords=self.index.stopwords, tokenizer=self.tokenizer,
            ),
        )


class AnalyticsEngine:
    def __init__(self, reports, directory=None, stopword_store=None, tokenizer=None,
                 cache_maxsize=2048, cache_ttl=0.0):
        self.reports = tuple(reports)
        self.directory = directory
        self.stopword_store = stopword_store or StopwordStore()
        self.tokenizer = tokenizer if isinstance(tokenizer, TokenizationAdapter) else TokenizationAdapter(tokenizer)
        self.cache_maxsize = cache_maxsize
        self.cache_ttl = cache_ttl
        self._rebuild_lock = Lock()
        self._generation = 0
        self._snapshot = self._build(self.stopword_store.words(), generation=1)
        self._generation = 1

    def _build(self, stopwords, generation):
        index = build_index(self.reports, stopwords, directory=self.directory, tokenizer=self.tokenizer)
        return Snapshot(generation, index, self.tokenizer, self.cache_maxsize, self.cache_ttl)

    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def generation(self):
        return self._snapshot.generation

    def stopwords(self):
        return sorted(self._snapshot.index.stopwords)

    def invalidate(self, new_stopwords):
        """
        Invalidate(newStopwords): rebuild the index with the new stopword set
        and publish it atomically. On failure the last good snapshot stays
        published and RebuildError is raised.
        """
        return self._rebuild(lambda current: new_stopwords)

    def add_stopwords(self, words):
        """Merge words into the current set and rebuild."""
        extra = set(normalize_stopwords(words))
        return self._rebuild(lambda current: current | extra)

    def remove_stopwords(self, words):
        """Drop words from the current set and rebuild."""
        gone = set(normalize_stopwords(words))
        return self._rebuild(lambda current: current - gone)

    def _rebuild(self, update):
        # update maps the published stopword set to the next one; it runs under
        # the rebuild lock so concurrent add/remove calls never drop each other
        with self._rebuild_lock:
            words = normalize_stopwords(update(set(self._snapshot.index.stopwords)))
            generation = self._generation + 1
            try:
                snapshot = self._build(frozenset(words), generation)
                self.stopword_store.replace(words)
            except Exception as exc:
                logger.exception("Index rebuild for generation %d failed; keeping generation %d",
                                 generation, self._snapshot.generation)
                raise RebuildError(str(exc)) from exc

            # single reference swap: readers see the old or the new snapshot, never a mix
            self._snapshot = snapshot
            self._generation = generation
        logger.info("Published index generation %d (%d stopwords)", generation, len(words))
        return {"ok": True, "generation": generation, "size": len(words)}
