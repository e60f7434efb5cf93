# utils/loader.py
"""
Corpus loader and normalizer
----------------------------
Loads the local/national report and institute JSON files, maps every
source record onto the single `Report` shape, normalizes links,
and builds the institute -> council group lookup.

Nothing downstream reads raw source dicts: the field-name fallbacks
live here and only here.
"""

import json
import logging
import math
import os
from dataclasses import dataclass, field
from typing import Optional, Tuple
from urllib.parse import urlparse

from backend.utils.errors import CorpusLoadError

logger = logging.getLogger(__name__)

SCOPES = ("local", "national")

REPORT_FILES = {
    "local": "local_reports.json",
    "national": "national_reports.json",
}
LOCAL_INSTITUTES_FILE = "local_institutes.json"
NATIONAL_INSTITUTES_FILE = "national_institutes.json"


@dataclass(frozen=True)
class Report:
    id: str
    year: Optional[int]
    title: str
    institute: str
    scope: str
    url: Optional[str] = None
    authors: Tuple[str, ...] = ()

    def to_dict(self):
        return {
            "id": self.id,
            "year": self.year,
            "title": self.title,
            "institute": self.institute,
            "scope": self.scope,
            "url": self.url,
            "authors": list(self.authors),
        }


@dataclass(frozen=True)
class InstituteDirectory:
    """Institute metadata needed by the core: council group per national institute."""
    national_groups: dict = field(default_factory=dict)
    local_names: frozenset = frozenset()

    def resolve_group(self, institute: str, scope: str):
        if scope != "national":
            return None
        return self.national_groups.get(institute)


def _normalize_url(url: str):
    """
    Normalize and validate external URLs.
    Returns a valid http(s) URL or None.
    """
    if not url or not isinstance(url, str):
        return None

    u = url.strip()
    if not u:
        return None

    if u.startswith("http://") or u.startswith("https://"):
        return u

    parsed = urlparse(u)
    if parsed.scheme and parsed.netloc:
        return u

    if "." in u and " " not in u:
        return "https://" + u

    return None


def _first_str(raw: dict, *fields):
    for name in fields:
        val = raw.get(name)
        if val is None:
            continue
        s = str(val).strip()
        if s:
            return s
    return ""


def _parse_year(raw: dict):
    for name in ("year", "publish_year", "pub_year", "report_year"):
        val = raw.get(name)
        if val is None or str(val).strip() == "":
            continue
        try:
            n = float(str(val).strip())
        except ValueError:
            continue
        if math.isfinite(n):
            return int(n)
    return None


def _parse_authors(value):
    if value is None:
        return ()
    if isinstance(value, str):
        parts = value.replace(";", ",").split(",")
    elif isinstance(value, (list, tuple)):
        parts = value
    else:
        return ()
    return tuple(str(a).strip() for a in parts if a is not None and str(a).strip())


def normalize_report(raw: dict, scope: str, position: int) -> Report:
    """Map one source record, whatever its field names, onto a Report."""
    rid = _first_str(raw, "id", "report_id") or f"{scope}-{position}"
    url_candidate = _first_str(raw, "url", "link", "href")
    return Report(
        id=rid,
        year=_parse_year(raw),
        title=_first_str(raw, "title", "report_title", "name"),
        institute=_first_str(raw, "institute", "institute_name", "org"),
        scope=scope,
        url=_normalize_url(url_candidate),
        authors=_parse_authors(raw.get("authors")),
    )


def normalize_reports(raw_reports: list, scope: str):
    reports = []
    for i, raw in enumerate(raw_reports or []):
        if not isinstance(raw, dict):
            logger.warning("Skipping non-object %s report at position %d", scope, i)
            continue
        reports.append(normalize_report(raw, scope, i))
    return reports


def build_directory(local_institutes, national_institutes_raw) -> InstituteDirectory:
    """
    National institutes JSON groups institutes under group keys
    (e.g. "nrc", "nst") next to metadata keys such as "updated_at".
    """
    groups = {}
    for group_key, members in (national_institutes_raw or {}).items():
        if not isinstance(members, list):
            continue
        for inst in members:
            if isinstance(inst, dict) and inst.get("name"):
                groups[str(inst["name"]).strip()] = group_key

    local_names = frozenset(
        str(x["name"]).strip()
        for x in (local_institutes or [])
        if isinstance(x, dict) and x.get("name")
    )
    return InstituteDirectory(national_groups=groups, local_names=local_names)


def _read_json(data_dir: str, file_name: str):
    path = os.path.join(data_dir, file_name)
    if not os.path.exists(path):
        raise CorpusLoadError(f"Dataset not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        raise CorpusLoadError(f"Could not read {path}: {exc}") from exc


def load_corpus(data_dir: str):
    """
    Load and normalize the whole corpus.

    Returns:
        tuple:
          - reports (list of Report, local first then national)
          - directory (InstituteDirectory)
    """
    reports = []
    for scope in SCOPES:
        reports.extend(normalize_reports(_read_json(data_dir, REPORT_FILES[scope]), scope))

    directory = build_directory(
        _read_json(data_dir, LOCAL_INSTITUTES_FILE),
        _read_json(data_dir, NATIONAL_INSTITUTES_FILE),
    )
    logger.info(
        "Loaded %d reports and %d national institutes from %s",
        len(reports), len(directory.national_groups), data_dir,
    )
    return reports, directory
