# services/researchers.py
"""
Researcher Model Service
------------------------
Derives researcher profiles from report bylines and turns them into a
TF-IDF vector space.

- Profiles are keyed by (lowercased name, institute): two people sharing a
  name at different institutes are different researchers.
- Co-author degree comes from a name-level collaboration graph across the
  whole scope, so same-named people share that signal.
- IDF over profiles: idf(k) = ln((N+1)/(df(k)+1)) + 1
- Profile weights: (1 + ln(1 + rawCount)) * idf, top 240 kept, L2-normalized.
- Focus: 1 - H(p)/H_max over the keyword-count distribution.

Complexity:
- Build: O(N * A * K) for N reports, A authors per report, K tokens per title
"""

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Optional

from backend.services.graph import CollaborationGraph, CooccurrenceGraph, top_keywords

logger = logging.getLogger(__name__)

VECTOR_SIZE = 240
EXPERTISE_TAGS = 16
RECENT_REPORTS = 5
EXPANSION_VOCABULARY = 2000


@dataclass
class ResearcherProfile:
    name: str
    institute: str
    groups: set = field(default_factory=set)
    scopes: set = field(default_factory=set)
    report_ids: set = field(default_factory=set)
    last_active_year: Optional[int] = None
    keyword_counts: dict = field(default_factory=dict)
    recent_reports: list = field(default_factory=list)
    coauthor_degree: int = 0
    vector: dict = field(default_factory=dict)
    keywords: list = field(default_factory=list)
    focus: float = 0.0

    @property
    def key(self):
        return profile_key(self.name, self.institute)

    @property
    def report_count(self):
        return len(self.report_ids)


@dataclass(frozen=True)
class ResearcherModel:
    scope: str
    profiles: tuple
    idf: dict
    cooccurrence: CooccurrenceGraph

    def idf_of(self, token):
        """IDF of a token, including tokens no profile carries (df = 0)."""
        w = self.idf.get(token)
        if w is None:
            w = compute_idf(len(self.profiles), 0)
        return w


def profile_key(name, institute):
    return (str(name).strip().lower(), institute)


def compute_idf(n_profiles, df):
    return math.log((n_profiles + 1) / (df + 1)) + 1.0


def term_weight(tf, idf):
    return (1.0 + math.log(1.0 + tf)) * idf


def l2_normalize(vec):
    norm = math.sqrt(sum(w * w for w in vec.values()))
    if norm <= 0:
        return {}
    return {k: w / norm for k, w in vec.items()}


def focus_score(keyword_counts):
    """
    1 - H/H_max of the keyword distribution.
    Single-keyword profiles are fully focused; empty profiles score 0.
    """
    counts = [c for c in keyword_counts.values() if c > 0]
    if not counts:
        return 0.0
    if len(counts) == 1:
        return 1.0
    total = float(sum(counts))
    entropy = -sum((c / total) * math.log(c / total) for c in counts)
    return max(0.0, min(1.0, 1.0 - entropy / math.log(len(counts))))


def dedupe_authors(authors):
    """Case-insensitive dedupe of a byline, first spelling wins."""
    seen = {}
    for raw in authors:
        name = str(raw or "").strip()
        if name and name.lower() not in seen:
            seen[name.lower()] = name
    return list(seen.values())


def _add_recent(profile, report):
    entry = {"id": report.id, "year": report.year, "title": report.title, "url": report.url}
    profile.recent_reports.append(entry)
    profile.recent_reports.sort(key=lambda x: x["year"] or 0, reverse=True)
    del profile.recent_reports[RECENT_REPORTS:]


def _vectorize(profile, idf):
    weights = {k: term_weight(c, idf[k]) for k, c in profile.keyword_counts.items()}
    ranked = sorted(weights.items(), key=lambda kv: (-kv[1], kv[0]))[:VECTOR_SIZE]
    profile.vector = l2_normalize(dict(ranked))
    profile.keywords = [k for k, _ in ranked[:EXPERTISE_TAGS]]
    profile.focus = focus_score(profile.keyword_counts)


def build_researcher_model(index, scope="all") -> ResearcherModel:
    """BuildResearcherModel(index, scope) -> ResearcherModel. Pure given (index, scope)."""
    started = time.perf_counter()
    reports = index.reports_in_scope(scope)

    profiles = {}
    collab = CollaborationGraph()

    for r in reports:
        names = dedupe_authors(r.authors)
        if not names:
            continue
        collab.add_byline([n.lower() for n in names])
        toks = index.token_set(r.id)
        group = index.resolve_group(r.institute, r.scope)

        for name in names:
            key = profile_key(name, r.institute)
            p = profiles.get(key)
            if p is None:
                p = ResearcherProfile(name=name, institute=r.institute)
                profiles[key] = p
            if r.id in p.report_ids:
                continue

            p.report_ids.add(r.id)
            p.scopes.add(r.scope)
            if group:
                p.groups.add(group)
            if r.year is not None and (p.last_active_year is None or r.year > p.last_active_year):
                p.last_active_year = r.year
            for t in toks:
                p.keyword_counts[t] = p.keyword_counts.get(t, 0) + 1
            _add_recent(p, r)

    df = {}
    for p in profiles.values():
        for k in p.keyword_counts:
            df[k] = df.get(k, 0) + 1
    n = len(profiles)
    idf = {k: compute_idf(n, d) for k, d in df.items()}

    for p in profiles.values():
        p.coauthor_degree = collab.degree(p.name.lower())
        _vectorize(p, idf)

    # query expansion vocabulary: most frequent keywords of the scope
    scope_counts = {}
    for r in reports:
        for kw in index.token_set(r.id):
            scope_counts[kw] = scope_counts.get(kw, 0) + 1
    cooccurrence = CooccurrenceGraph().build_graph(
        (index.token_set(r.id) for r in reports),
        allowed=set(top_keywords(scope_counts, EXPANSION_VOCABULARY)),
    )

    logger.info(
        "Built researcher model for scope=%s: %d profiles, %d terms (%.0f ms)",
        scope, n, len(idf), (time.perf_counter() - started) * 1000,
    )
    return ResearcherModel(
        scope=scope,
        profiles=tuple(profiles.values()),
        idf=idf,
        cooccurrence=cooccurrence,
    )
