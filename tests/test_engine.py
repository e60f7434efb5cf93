"""
Tests for snapshots, caching and copy-on-write rebuilds.
"""
import pytest

from backend.services.engine import AnalyticsEngine
from backend.services.tokenizer import tokenize_title
from backend.utils.errors import InputError, RebuildError
from backend.utils.stopwords import StopwordStore


class TestSnapshot:
    def test_starts_at_generation_one(self, engine):
        assert engine.generation == 1
        assert engine.snapshot().generation == 1
        assert engine.stopwords() == []

    def test_equivalent_filters_hit_the_cache(self, engine):
        snap = engine.snapshot()
        a = snap.keyword_stats({}, top=3)
        b = snap.keyword_stats({"scope": "ALL", "q": "  "}, top="3")
        assert a is b
        assert snap.cache.hits >= 1

    def test_different_filters_do_not_collide(self, engine):
        snap = engine.snapshot()
        local = snap.keyword_stats({"scope": "local"})
        national = snap.keyword_stats({"scope": "national"})
        assert local is not national
        assert local["reportsPerInstitute"] != national["reportsPerInstitute"]

    def test_keyword_series_requires_keyword(self, engine):
        with pytest.raises(InputError) as exc:
            engine.snapshot().keyword_series("   ")
        assert exc.value.param == "keyword"

    def test_researcher_model_is_built_once_per_scope(self, engine):
        snap = engine.snapshot()
        assert snap.researcher_model("all") is snap.researcher_model("ALL")
        assert snap.researcher_model("national") is not snap.researcher_model("all")

    def test_search_researchers_is_cached(self, engine):
        snap = engine.snapshot()
        a = snap.search_researchers("hydrogen", scope="all")
        b = snap.search_researchers("hydrogen", scope="all")
        assert a is b
        assert a["items"]

    def test_search_reports(self, engine):
        page = engine.snapshot().search_reports({"scope": "national"}, limit=2)
        assert page["total"] == 5
        assert [it["id"] for it in page["items"]] == ["n01", "n02"]


class TestInvalidate:
    def test_publishes_new_generation(self, engine):
        old = engine.snapshot()
        result = engine.invalidate(["Energy", " energy ", ""])
        assert result == {"ok": True, "generation": 2, "size": 1}

        new = engine.snapshot()
        assert new is not old
        assert new.generation == 2
        assert "energy" not in new.index.kw_count
        assert new.keyword_stats()["topKeywords"][0]["key"] == "housing"
        assert engine.stopwords() == ["energy"]

    def test_old_snapshot_is_untouched(self, engine):
        old = engine.snapshot()
        before = old.keyword_stats()
        engine.invalidate(["energy"])
        assert old.index.kw_count["energy"] == 9
        assert old.keyword_stats() is before
        assert len(old.cache) > 0
        assert len(engine.snapshot().cache) == 0

    def test_researchers_follow_stopwords(self, engine):
        engine.invalidate(["hydrogen"])
        model = engine.snapshot().researcher_model("all")
        assert all("hydrogen" not in p.vector for p in model.profiles)

    def test_failed_rebuild_keeps_last_good_snapshot(self, reports, directory):
        def tokenizer(text, stopwords):
            if "explode" in stopwords:
                raise RuntimeError("tokenizer crashed")
            return tokenize_title(text, stopwords)

        store = StopwordStore()
        engine = AnalyticsEngine(reports, directory, stopword_store=store, tokenizer=tokenizer)
        snap = engine.snapshot()

        with pytest.raises(RebuildError):
            engine.invalidate(["explode"])

        assert engine.generation == 1
        assert engine.snapshot() is snap
        assert store.words() == frozenset()

        assert engine.invalidate(["outlook"])["generation"] == 2

    def test_persists_to_store(self, reports, directory, tmp_path):
        store = StopwordStore.in_data_dir(str(tmp_path))
        engine = AnalyticsEngine(reports, directory, stopword_store=store)
        engine.invalidate(["Outlook", "energy"])

        reloaded = AnalyticsEngine(reports, directory, stopword_store=StopwordStore.in_data_dir(str(tmp_path)))
        assert reloaded.stopwords() == ["energy", "outlook"]
        assert "outlook" not in reloaded.snapshot().index.kw_count


class TestIncrementalStopwords:
    def test_add_merges_with_current_set(self, engine):
        engine.invalidate(["outlook"])
        result = engine.add_stopwords([" Energy", "outlook"])
        assert result == {"ok": True, "generation": 3, "size": 2}
        assert engine.stopwords() == ["energy", "outlook"]

    def test_remove_keeps_the_rest(self, engine):
        engine.invalidate(["energy", "outlook"])
        engine.remove_stopwords(["ENERGY", "unknown"])
        assert engine.stopwords() == ["outlook"]
        assert engine.snapshot().index.kw_count["energy"] == 9
