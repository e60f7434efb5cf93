# services/analytics.py
"""
Analytics service
-----------------
Trend aggregates over a filtered view of the corpus: keyword statistics,
time series, rising and burst keywords, word cloud, co-occurrence network,
institute heatmap and related reports.

Every function is pure given (index, view). `aggregate` is the shared
first step; callers that cache may compute it once and pass it in.
"""

import math
import re
from dataclasses import dataclass

from backend.services.graph import CooccurrenceGraph, top_keywords
from backend.services.search import clamp_int
from backend.utils.errors import InputError

RISING_MIN_COUNT = 3
BURST_MIN_COUNT = 3
BURST_MIN_Z = 2.0
BURST_CANDIDATES = 200


@dataclass(frozen=True)
class Aggregate:
    kw_count: dict
    kw_year_count: dict
    reports_per_year: dict
    reports_per_institute: dict


def aggregate(index, view) -> Aggregate:
    """
    Keyword and report counts restricted to the view's rows.
    Same counting rules as the index: once per report, known years only.
    """
    kw_count = {}
    kw_year_count = {}
    reports_per_year = {}
    reports_per_institute = {}

    for r in view.rows:
        reports_per_year[r.year] = reports_per_year.get(r.year, 0) + 1
        reports_per_institute[r.institute] = reports_per_institute.get(r.institute, 0) + 1
        for kw in index.token_set(r.id):
            kw_count[kw] = kw_count.get(kw, 0) + 1
            if r.year is not None:
                m = kw_year_count.setdefault(kw, {})
                m[r.year] = m.get(r.year, 0) + 1

    return Aggregate(kw_count, kw_year_count, reports_per_year, reports_per_institute)


def _series(year_counts, years):
    return [{"year": y, "count": int((year_counts or {}).get(y, 0))} for y in years]


def _top_pairs(counts, n):
    ranked = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)
    return ranked[:n]


def keyword_stats(index, view, top=200, agg=None):
    t = clamp_int(top, 200, 1, 5000)
    agg = agg or aggregate(index, view)
    return {
        "scope": view.filters.scope,
        "filters": view.filters.to_dict(),
        "topKeywords": [{"key": k, "value": v} for k, v in _top_pairs(agg.kw_count, t)],
        "years": list(view.years),
        "reportsPerYear": [
            {"year": y, "count": agg.reports_per_year.get(y, 0)} for y in view.years
        ],
        "reportsPerInstitute": [
            {"institute": name, "count": c}
            for name, c in _top_pairs(agg.reports_per_institute, len(agg.reports_per_institute))
        ],
    }


_CONTROL = re.compile(r"[\x00-\x1f]")
_BRACKETS = re.compile(r"[()\[\]{}<>\"'`]")
_PUNCT = re.compile(r"[.,;:!?·…]")
_SLASHES = re.compile(r"[/\\]")
_SPACE = re.compile(r"\s+")
_JOINERS = re.compile(r"[_\-]")


def normalize_keyword(s):
    """Case, whitespace and punctuation-insensitive form of a keyword."""
    s = str(s or "").lower()
    for pattern in (_CONTROL, _BRACKETS, _PUNCT, _SLASHES):
        s = pattern.sub(" ", s)
    s = _SPACE.sub("", s)
    return _JOINERS.sub("", s)


def resolve_keyword(keyword, known):
    """
    Literal, then lowercase, then normalized match against known keywords.
    Returns the resolved keyword or "".
    """
    if keyword in known:
        return keyword
    lower = keyword.lower()
    if lower in known:
        return lower
    target = normalize_keyword(keyword)
    if not target:
        return ""
    for k in known:
        if normalize_keyword(k) == target:
            return k
    return ""


def keyword_series(index, view, keyword, agg=None):
    kw_raw = str(keyword or "").strip()
    if not kw_raw:
        raise InputError("keyword")

    agg = agg or aggregate(index, view)
    resolved = resolve_keyword(kw_raw, agg.kw_year_count)
    return {
        "keyword": kw_raw,
        "resolvedKeyword": resolved,
        "data": _series(agg.kw_year_count.get(resolved), view.years),
    }


def top5_trends(index, view, agg=None):
    agg = agg or aggregate(index, view)
    top5 = top_keywords(agg.kw_count, 5)
    return {
        "scope": view.filters.scope,
        "filters": view.filters.to_dict(),
        "top5": top5,
        "series": [
            {"keyword": kw, "data": _series(agg.kw_year_count.get(kw), view.years)}
            for kw in top5
        ],
    }


def rising_keywords(index, view, top=20, agg=None):
    """
    Growth between the two most recent years present in the view.
    growth = (compareCount + 1) / (baseCount + 1), compareCount >= 3.
    """
    t = clamp_int(top, 20, 1, 200)
    years = view.present_years()
    if len(years) < 2:
        return {
            "scope": view.filters.scope,
            "filters": view.filters.to_dict(),
            "baseYear": years[0] if years else None,
            "compareYear": None,
            "items": [],
        }

    agg = agg or aggregate(index, view)
    y1, y2 = years[-2], years[-1]
    items = []
    for kw, m in agg.kw_year_count.items():
        c2 = m.get(y2, 0)
        if c2 < RISING_MIN_COUNT:
            continue
        c1 = m.get(y1, 0)
        items.append({
            "keyword": kw,
            "baseYear": y1,
            "baseCount": c1,
            "compareYear": y2,
            "compareCount": c2,
            "growth": (c2 + 1) / (c1 + 1),
        })

    items.sort(key=lambda x: x["growth"], reverse=True)
    return {
        "scope": view.filters.scope,
        "filters": view.filters.to_dict(),
        "baseYear": y1,
        "compareYear": y2,
        "items": items[:t],
    }


def burst_keywords(index, view, top=20, agg=None):
    """
    Z-score of the last year's count against the mean/std of every prior
    year, for the view's most frequent keywords. std is floored to 1.
    """
    t = clamp_int(top, 20, 1, 200)
    years = view.present_years()
    last = years[-1] if years else None
    result = {"scope": view.filters.scope, "filters": view.filters.to_dict(), "year": last, "items": []}
    if len(years) < 2:
        return result

    agg = agg or aggregate(index, view)
    prior = years[:-1]
    scored = []
    for kw in top_keywords(agg.kw_count, BURST_CANDIDATES):
        m = agg.kw_year_count.get(kw, {})
        last_val = m.get(last, 0)
        if last_val < BURST_MIN_COUNT:
            continue
        arr = [m.get(y, 0) for y in prior]
        mean = sum(arr) / len(arr)
        variance = sum((v - mean) ** 2 for v in arr) / len(arr)
        std = max(math.sqrt(variance), 1.0)
        z = (last_val - mean) / std
        if z > BURST_MIN_Z:
            scored.append({"keyword": kw, "year": last, "z": z, "lastVal": last_val, "mean": mean})

    scored.sort(key=lambda x: x["z"], reverse=True)
    result["items"] = scored[:t]
    return result


def word_cloud(index, view, top=50, agg=None):
    t = clamp_int(top, 50, 1, 500)
    agg = agg or aggregate(index, view)
    return {
        "scope": view.filters.scope,
        "filters": view.filters.to_dict(),
        "items": [{"text": k, "value": v} for k, v in _top_pairs(agg.kw_count, t)],
    }


def cooccurrence_network(index, view, top_keywords_n=120, edge_top=400, agg=None):
    tkw = clamp_int(top_keywords_n, 120, 10, 1000)
    et = clamp_int(edge_top, 400, 10, 5000)
    agg = agg or aggregate(index, view)

    top = top_keywords(agg.kw_count, tkw)
    graph = CooccurrenceGraph().build_graph(
        (index.token_set(r.id) for r in view.rows), allowed=set(top)
    )
    return {
        "scope": view.filters.scope,
        "filters": view.filters.to_dict(),
        "nodes": [{"id": k, "size": agg.kw_count.get(k, 1)} for k in top],
        "edges": graph.top_edges(et),
    }


def institute_heatmap(index, view, top_keywords_n=30, agg=None):
    """
    Cell = reports of the institute containing the keyword
           / reports of the institute in the view.
    """
    tkw = clamp_int(top_keywords_n, 30, 5, 200)
    agg = agg or aggregate(index, view)
    keywords = top_keywords(agg.kw_count, tkw)
    kw_set = set(keywords)

    matrix = {}
    for r in view.rows:
        m = matrix.setdefault(r.institute, {})
        for kw in index.token_set(r.id):
            if kw in kw_set:
                m[kw] = m.get(kw, 0) + 1

    rows = []
    for inst in sorted(matrix):
        total = agg.reports_per_institute.get(inst) or 1
        m = matrix[inst]
        rows.append({
            "institute": inst,
            "values": {kw: m.get(kw, 0) / total for kw in keywords},
        })

    return {
        "scope": view.filters.scope,
        "filters": view.filters.to_dict(),
        "keywords": keywords,
        "rows": rows,
    }


def related_reports(index, view, keyword, limit=50):
    kw = str(keyword or "").strip().lower()
    if not kw:
        raise InputError("keyword")
    lim = clamp_int(limit, 50, 1, 200)

    items = [
        {
            "id": r.id,
            "year": r.year,
            "institute": r.institute,
            "title": r.title,
            "url": r.url,
            "scope": r.scope,
        }
        for r in view.rows
        if index.has_token(r.id, kw)
    ]
    items.sort(key=lambda x: x["year"] or 0, reverse=True)
    return {"keyword": kw, "items": items[:lim]}
