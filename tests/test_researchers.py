"""
Tests for researcher profiles and the TF-IDF model.
"""
import math

import pytest

from backend.services.researchers import (
    build_researcher_model,
    compute_idf,
    dedupe_authors,
    focus_score,
)


@pytest.fixture
def model(index):
    return build_researcher_model(index, "all")


def profile(model, name, institute):
    return next(p for p in model.profiles if p.name.lower() == name.lower() and p.institute == institute)


class TestProfiles:
    def test_keyed_by_name_and_institute(self, model):
        kims = [p for p in model.profiles if p.name.lower() == "kim minji"]
        assert sorted(p.institute for p in kims) == ["Energy Economics Institute", "Seoul Institute"]
        assert len(model.profiles) == 9

    def test_repeated_author_counted_once(self, model):
        # r14 lists Kim Minji twice
        kim = profile(model, "Kim Minji", "Seoul Institute")
        assert kim.report_count == 5
        assert kim.keyword_counts["hydrogen"] == 1
        assert kim.name == "Kim Minji"

    def test_last_active_and_recent_reports(self, model):
        lee = profile(model, "Lee Jun", "Seoul Institute")
        assert lee.last_active_year == 2023
        assert len(lee.recent_reports) == 5
        years = [r["year"] for r in lee.recent_reports]
        assert years == sorted(years, reverse=True)

    def test_groups_and_scopes(self, model):
        yoon = profile(model, "Yoon Seo", "Energy Economics Institute")
        assert yoon.groups == {"nrc"}
        assert yoon.scopes == {"national"}

    def test_coauthor_degree_is_name_level(self, model):
        # Kim Minji at the national institute never co-authored there,
        # but shares the name-level collaboration signal
        assert profile(model, "Kim Minji", "Energy Economics Institute").coauthor_degree == 1
        assert profile(model, "Lee Jun", "Seoul Institute").coauthor_degree == 2
        assert profile(model, "Choi Woo", "Busan Institute").coauthor_degree == 0

    def test_scope_restricts_profiles(self, index):
        national = build_researcher_model(index, "national")
        assert {p.institute for p in national.profiles} == {
            "Energy Economics Institute", "Science Technology Policy Institute",
        }


class TestVectors:
    def test_idf(self, model):
        # energy appears in 5 of 9 profiles
        assert model.idf["energy"] == pytest.approx(math.log(10 / 6) + 1)
        assert model.idf_of("unseen") == pytest.approx(compute_idf(9, 0))

    def test_vectors_are_unit_length(self, model):
        for p in model.profiles:
            assert len(p.vector) <= 240
            assert math.sqrt(sum(w * w for w in p.vector.values())) == pytest.approx(1.0)

    def test_expertise_tags(self, model):
        kim = profile(model, "Kim Minji", "Seoul Institute")
        assert len(kim.keywords) <= 16
        assert "energy" in kim.keywords

    def test_expansion_graph(self, model):
        assert model.cooccurrence.neighbours("hydrogen", 3) == ["buses", "cell", "economy"]


class TestFocus:
    def test_single_keyword_is_specialist(self):
        assert focus_score({"grid": 4}) == 1.0

    def test_uniform_is_generalist(self):
        assert focus_score({"a": 1, "b": 1, "c": 1}) == pytest.approx(0.0)

    def test_skewed_is_in_between(self):
        assert 0.0 < focus_score({"a": 9, "b": 1}) < 1.0

    def test_empty(self):
        assert focus_score({}) == 0.0

    def test_profile_focus(self, model):
        assert profile(model, "Kim Minji", "Energy Economics Institute").focus == pytest.approx(0.0)


def test_dedupe_authors():
    assert dedupe_authors(["Kim Minji", "kim minji ", "", "Lee Jun"]) == ["Kim Minji", "Lee Jun"]
