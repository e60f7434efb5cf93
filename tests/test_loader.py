"""
Tests for corpus loading and record normalization.
"""
import json

import pytest

from backend.utils.errors import CorpusLoadError
from backend.utils.loader import (
    build_directory,
    load_corpus,
    normalize_report,
    normalize_reports,
)


class TestNormalizeReport:
    def test_primary_field_names(self):
        r = normalize_report({
            "id": "A-1",
            "year": "2021",
            "title": " Grid storage ",
            "institute": "Seoul Institute",
            "url": "www.example.org/a1",
            "authors": ["Kim Minji", " ", "Lee Jun"],
        }, "local", 0)
        assert r.id == "A-1"
        assert r.year == 2021
        assert r.title == "Grid storage"
        assert r.url == "https://www.example.org/a1"
        assert r.authors == ("Kim Minji", "Lee Jun")

    def test_fallback_field_names(self):
        r = normalize_report({
            "report_id": 7,
            "publish_year": 2019.0,
            "report_title": "Energy outlook",
            "institute_name": "Busan Institute",
            "link": "https://example.org/7",
            "authors": "Park Hana; Choi Woo, ",
        }, "national", 3)
        assert r.id == "7"
        assert r.year == 2019
        assert r.title == "Energy outlook"
        assert r.institute == "Busan Institute"
        assert r.url == "https://example.org/7"
        assert r.authors == ("Park Hana", "Choi Woo")
        assert r.scope == "national"

    def test_missing_values(self):
        r = normalize_report({"year": "unknown", "url": "not a url"}, "local", 4)
        assert r.id == "local-4"
        assert r.year is None
        assert r.title == ""
        assert r.url is None
        assert r.authors == ()

    def test_non_objects_are_skipped(self):
        reports = normalize_reports([{"title": "ok"}, "junk", None], "local")
        assert [r.title for r in reports] == ["ok"]


def test_build_directory():
    directory = build_directory(
        [{"name": "Seoul Institute"}, {"nope": 1}],
        {"updated_at": "2024-01-01", "nrc": [{"name": "Energy Economics Institute"}], "nst": [{"name": "Policy Lab"}]},
    )
    assert directory.local_names == frozenset({"Seoul Institute"})
    assert directory.resolve_group("Energy Economics Institute", "national") == "nrc"
    assert directory.resolve_group("Policy Lab", "local") is None


class TestLoadCorpus:
    def _write(self, path, name, payload):
        (path / name).write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")

    def test_loads_local_then_national(self, tmp_path):
        self._write(tmp_path, "local_reports.json", [{"id": "l1", "title": "수소 경제", "institute": "Seoul Institute"}])
        self._write(tmp_path, "national_reports.json", [{"id": "n1", "title": "Grid", "institute": "KEEI"}])
        self._write(tmp_path, "local_institutes.json", [{"name": "Seoul Institute"}])
        self._write(tmp_path, "national_institutes.json", {"nrc": [{"name": "KEEI"}]})

        reports, directory = load_corpus(str(tmp_path))
        assert [(r.id, r.scope) for r in reports] == [("l1", "local"), ("n1", "national")]
        assert directory.national_groups == {"KEEI": "nrc"}

    def test_missing_file(self, tmp_path):
        with pytest.raises(CorpusLoadError):
            load_corpus(str(tmp_path))

    def test_malformed_json(self, tmp_path):
        (tmp_path / "local_reports.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(CorpusLoadError):
            load_corpus(str(tmp_path))
