# services/ranking.py
"""
Ranking Service
---------------
Ranks researcher profiles against a free-text query:
1. Query expansion from keyword co-occurrence (transparent to the caller)
2. Cosine similarity between TF-IDF query and profile vectors
3. Auxiliary signals: coverage, productivity, recency, collaboration, focus
4. Literal name match override

Relevance score (ordering):
    7.0*similarity + 2.0*coverage + 0.55*productivity + 0.03*recency
    + 0.25*collab + 0.35*focus + nameBoost
Confidence (display, 0..1) is calibrated separately and more conservatively.

Complexity:
- Scoring: O(P * Q) where P = profiles, Q = expanded query terms.
- Sorting: O(P log P).
"""

import math
import re

from backend.services.search import clamp_int, council_group
from backend.services.tokenizer import TokenizationAdapter

# Final Rank Component Weights (Tuning)
W_SIMILARITY = 7.0
W_COVERAGE = 2.0
W_PRODUCTIVITY = 0.55
W_RECENCY = 0.03
W_COLLAB = 0.25
W_FOCUS = 0.35

EXACT_NAME_BOOST = 3.0
PARTIAL_NAME_BOOST = 1.6

RECENCY_BASE_YEAR = 2000

EXPANSIONS_PER_TOKEN = 5
MAX_EXPANSIONS = 6
MATCHED_KEYWORDS = 8

SORTS = ("relevance", "match", "ai", "recent", "outputs")

_WS = re.compile(r"\s+")


def clamp01(x):
    return max(0.0, min(1.0, x))


def rescale(x, low, high):
    return clamp01((x - low) / (high - low))


def confidence_score(similarity, coverage, productivity):
    return (
        0.65 * rescale(similarity, 0.05, 0.55)
        + 0.25 * rescale(coverage, 0.1, 0.8)
        + 0.10 * rescale(productivity, 0.5, 2.5)
    )


def _squash(text):
    return _WS.sub("", str(text or "")).lower()


def name_boost(query, name):
    q = _squash(query)
    n = _squash(name)
    if not q or not n:
        return 0.0
    if q == n:
        return EXACT_NAME_BOOST
    if len(q) >= 2 and (q in n or n in q):
        return PARTIAL_NAME_BOOST
    return 0.0


def expand_query(model, base_tokens):
    """
    Add up to 5 co-occurring keywords per base token, 6 in total.

    Returns:
        tuple: (expanded token list, [{"from", "to"}] expansion pairs)
    """
    present = set(base_tokens)
    added = []
    pairs = []
    for tok in dict.fromkeys(base_tokens):
        if len(added) >= MAX_EXPANSIONS:
            break
        candidates = [k for k in model.cooccurrence.neighbours(tok) if k not in present]
        for kw in candidates[:EXPANSIONS_PER_TOKEN]:
            if len(added) >= MAX_EXPANSIONS:
                break
            present.add(kw)
            added.append(kw)
            pairs.append({"from": tok, "to": kw})
    return list(base_tokens) + added, pairs


def query_vector(model, tokens):
    tf = {}
    for t in tokens:
        tf[t] = tf.get(t, 0) + 1
    vec = {t: (1.0 + math.log(1.0 + c)) * model.idf_of(t) for t, c in tf.items()}
    norm = math.sqrt(sum(w * w for w in vec.values()))
    if norm <= 0:
        return {}
    return {t: w / norm for t, w in vec.items()}


def cosine(qvec, pvec):
    """Both vectors are L2-normalized, so the dot product is the cosine."""
    if len(pvec) < len(qvec):
        qvec, pvec = pvec, qvec
    return sum(w * pvec.get(t, 0.0) for t, w in qvec.items())


def build_reasons(profile, confidence):
    reasons = []
    if confidence >= 0.75:
        reasons.append("Strong expertise match")
    elif confidence >= 0.55:
        reasons.append("Works on related topics")
    if profile.last_active_year:
        reasons.append(f"Active in {profile.last_active_year}")
    if profile.report_count >= 10:
        reasons.append(f"{profile.report_count} reports")
    return reasons[:3]


def score_profile(profile, query, qvec, base_tokens, expanded_tokens):
    """Score one profile. Returns the explainable match breakdown."""
    productivity = math.log(1 + profile.report_count)
    recency = (profile.last_active_year - RECENCY_BASE_YEAR) if profile.last_active_year else 0
    collab = math.log(1 + profile.coauthor_degree)

    if not query:
        # no query: recency and outputs only
        score = W_PRODUCTIVITY * productivity + W_RECENCY * recency
        confidence = confidence_score(0.0, 0.0, productivity)
        return {
            "score": score,
            "confidence": confidence,
            "similarity": 0.0,
            "coverage": 0.0,
            "productivity": productivity,
            "recency": recency,
            "collab": collab,
            "focus": profile.focus,
            "nameBoost": 0.0,
            "matchedKeywords": [],
            "reasons": build_reasons(profile, confidence),
        }

    similarity = cosine(qvec, profile.vector)
    coverage_terms = list(dict.fromkeys(base_tokens or expanded_tokens))
    tags = set(profile.keywords)
    coverage = (
        sum(1 for t in coverage_terms if t in tags) / len(coverage_terms)
        if coverage_terms else 0.0
    )
    boost = name_boost(query, profile.name)

    score = (
        W_SIMILARITY * similarity
        + W_COVERAGE * coverage
        + W_PRODUCTIVITY * productivity
        + W_RECENCY * recency
        + W_COLLAB * collab
        + W_FOCUS * profile.focus
        + boost
    )
    confidence = confidence_score(similarity, coverage, productivity)

    contrib = sorted(
        ((t, w * profile.vector[t]) for t, w in qvec.items() if t in profile.vector),
        key=lambda x: (-x[1], x[0]),
    )
    return {
        "score": score,
        "confidence": confidence,
        "similarity": similarity,
        "coverage": coverage,
        "productivity": productivity,
        "recency": recency,
        "collab": collab,
        "focus": profile.focus,
        "nameBoost": boost,
        "matchedKeywords": [t for t, _ in contrib[:MATCHED_KEYWORDS]],
        "reasons": build_reasons(profile, confidence),
    }


def _exact_name(it):
    return it["match"]["nameBoost"] >= EXACT_NAME_BOOST


def _sort_key(sort):
    # every ordering ends with name then institute so results are deterministic.
    # only an exact name match jumps the queue; partial boosts act through score
    if sort == "recent":
        return lambda it: (-(it["lastActiveYear"] or 0), -it["reportCount"], it["name"], it["institute"])
    if sort == "outputs":
        return lambda it: (-it["reportCount"], -(it["lastActiveYear"] or 0), it["name"], it["institute"])
    if sort in ("match", "ai"):
        return lambda it: (
            not _exact_name(it),
            -it["match"]["confidence"],
            -it["match"]["similarity"],
            -it["match"]["score"],
            it["name"],
            it["institute"],
        )
    return lambda it: (not _exact_name(it), -it["match"]["score"], it["name"], it["institute"])


def _matches_institute(profile, institute):
    if profile.institute == institute:
        return True
    group = council_group(institute)
    return bool(group and group in profile.groups)


def _to_item(profile, match, scope):
    return {
        "id": f"{profile.name}@{profile.institute}",
        "name": profile.name,
        "institute": profile.institute,
        "scope": scope,
        "scopes": sorted(profile.scopes),
        "groups": sorted(profile.groups),
        "reportCount": profile.report_count,
        "lastActiveYear": profile.last_active_year,
        "coauthorDegree": profile.coauthor_degree,
        "keywords": list(profile.keywords),
        "recentReports": list(profile.recent_reports),
        "match": match,
    }


def search_researchers(model, query="", institute=None, sort="relevance", limit=24, offset=0,
                       stopwords=frozenset(), tokenizer=None):
    """
    SearchResearchers(model, query, filters, sort, limit, offset) -> page

    Returns:
        dict: {items, total, limit, offset, sort, facets, queryAnalysis, suggestedKeywords}
    """
    adapter = tokenizer if isinstance(tokenizer, TokenizationAdapter) else TokenizationAdapter(tokenizer)
    raw = str(query or "").strip()
    sort = str(sort or "relevance").strip().lower()
    if sort not in SORTS:
        sort = "relevance"
    lim = clamp_int(limit, 24, 1, 200)
    off = clamp_int(offset, 0, 0, 10 ** 9)
    inst = str(institute or "").strip()

    base_tokens = adapter.tokens(raw, stopwords)
    expanded_tokens, expansions = expand_query(model, base_tokens)
    qvec = query_vector(model, expanded_tokens)

    profiles = model.profiles
    if inst:
        profiles = [p for p in profiles if _matches_institute(p, inst)]

    scored = [
        _to_item(p, score_profile(p, raw, qvec, base_tokens, expanded_tokens), model.scope)
        for p in profiles
    ]
    scored.sort(key=_sort_key(sort))

    facet_counts = {}
    for it in scored:
        facet_counts[it["institute"]] = facet_counts.get(it["institute"], 0) + 1
    facets = {
        "institutes": [
            {"name": name, "count": c}
            for name, c in sorted(facet_counts.items(), key=lambda kv: (-kv[1], kv[0]))
        ]
    }

    suggested = list(dict.fromkeys(e["to"] for e in expansions))
    return {
        "items": scored[off:off + lim],
        "total": len(scored),
        "limit": lim,
        "offset": off,
        "sort": sort,
        "facets": facets,
        "queryAnalysis": {
            "raw": raw,
            "tokens": base_tokens,
            "expandedTokens": expanded_tokens,
            "expansions": expansions,
            "suggestedKeywords": suggested,
        },
        "suggestedKeywords": suggested,
    }
