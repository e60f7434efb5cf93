# services/search.py
"""
Filter Engine
-------------
Turns raw request filters {scope, institute, year, q} into a normalized
ReportFilter and selects the matching reports from the index.

Parsing is permissive: a non-numeric year means "no year filter" and an
unknown institute simply matches nothing. No scoring here.
"""

import math
from dataclasses import dataclass
from typing import Optional

SCOPES = ("all", "local", "national")

# council-style filters shown in the UI for national institutes
# (the data files call the NCT council "nst")
COUNCIL_GROUPS = {"NRC": "nrc", "NCT": "nst", "NST": "nst"}

MAX_SIGNATURE_Q = 80


def normalize_scope(scope):
    s = str(scope or "").strip().lower()
    return s if s in SCOPES else "all"


def parse_year(year):
    """Integer year, or None when absent or not numeric."""
    if year is None or isinstance(year, bool):
        return None
    s = str(year).strip()
    if not s:
        return None
    try:
        n = float(s)
    except ValueError:
        return None
    if not math.isfinite(n):
        return None
    return int(n)


def council_group(institute):
    return COUNCIL_GROUPS.get(str(institute or "").strip().upper())


def clamp_int(value, default, low, high):
    """Parse an int parameter, falling back to default, clamped to [low, high]."""
    try:
        n = int(float(value))
    except (TypeError, ValueError, OverflowError):
        n = default
    return max(low, min(high, n))


@dataclass(frozen=True)
class ReportFilter:
    scope: str = "all"
    institute: str = ""
    year: Optional[int] = None
    q: str = ""

    def key(self):
        """Hashable cache key; equal keys select equal rows."""
        # institute names match exactly, only council codes are case-insensitive
        is_council = self.scope == "national" and council_group(self.institute)
        institute = self.institute.upper() if is_council else self.institute
        return (
            self.scope,
            self.year,
            institute,
            self.q,
        )

    def signature(self):
        scope, year, institute, q = self.key()
        y = "" if year is None else str(year)
        return f"{scope}:y={y}:i={institute}:q={q[:MAX_SIGNATURE_Q]}"

    def to_dict(self):
        return {"scope": self.scope, "institute": self.institute, "year": self.year, "q": self.q}


def normalize_filters(scope="all", institute=None, year=None, q=None) -> ReportFilter:
    return ReportFilter(
        scope=normalize_scope(scope),
        institute=str(institute or "").strip(),
        year=parse_year(year),
        q=str(q or "").strip().lower(),
    )


def as_filter(filters) -> ReportFilter:
    """Accept a ReportFilter, a mapping of raw filter values, or None."""
    if isinstance(filters, ReportFilter):
        return filters
    filters = filters or {}
    return normalize_filters(
        scope=filters.get("scope", "all"),
        institute=filters.get("institute"),
        year=filters.get("year"),
        q=filters.get("q"),
    )


@dataclass(frozen=True)
class FilteredView:
    filters: ReportFilter
    rows: tuple
    # display axis for series: the filtered year, else every corpus year
    years: tuple

    def present_years(self):
        """Distinct known years that actually occur among the rows."""
        return sorted({r.year for r in self.rows if r.year is not None})


def _apply_institute_filter(index, rows, f):
    group = council_group(f.institute) if f.scope == "national" else None
    if group:
        return [r for r in rows if index.resolve_group(r.institute, r.scope) == group]
    return [r for r in rows if r.institute == f.institute]


def _apply_needle_filter(index, rows, needle):
    out = []
    for r in rows:
        if needle in (r.title or "").lower():
            out.append(r)
        elif any(needle in tok for tok in index.token_set(r.id)):
            out.append(r)
    return out


def select_reports(index, filters) -> FilteredView:
    """
    Filter(index, {scope?, institute?, year?, q?}) -> FilteredView

    Order: scope, year, institute, q.
    """
    f = as_filter(filters)
    rows = index.reports_in_scope(f.scope)
    if f.year is not None:
        rows = [r for r in rows if r.year == f.year]
    if f.institute:
        rows = _apply_institute_filter(index, rows, f)
    if f.q:
        rows = _apply_needle_filter(index, rows, f.q)

    years = (f.year,) if f.year is not None else tuple(index.years)
    return FilteredView(filters=f, rows=tuple(rows), years=years)


def search_reports(index, filters=None, limit=50, offset=0):
    """
    Paged report listing for the reports screen.

    Returns:
        dict: {total, limit, offset, items}
    """
    lim = clamp_int(limit, 50, 1, 200)
    off = clamp_int(offset, 0, 0, 10 ** 9)
    view = select_reports(index, filters)
    page = view.rows[off:off + lim]
    return {
        "total": len(view.rows),
        "limit": lim,
        "offset": off,
        "items": [r.to_dict() for r in page],
    }
