"""
Pytest configuration and fixtures for the analytics core tests.

The corpus is small enough to reason about by hand:
- "energy" appears every year 2019-2022 plus one undated report (9 reports)
- "housing" appears 3 times in 2022 and 3 times in 2023
- "hydrogen" appears only in 2023, 5 times (a burst)
"""
import pytest

from backend.services.engine import AnalyticsEngine
from backend.services.index import build_index
from backend.utils.loader import InstituteDirectory, Report

SEOUL = "Seoul Institute"
BUSAN = "Busan Institute"
KEEI = "Energy Economics Institute"
STEPI = "Science Technology Policy Institute"


def _report(rid, year, title, institute, authors, scope="local"):
    return Report(
        id=rid,
        year=year,
        title=title,
        institute=institute,
        scope=scope,
        url=f"https://reports.example.org/{rid}",
        authors=tuple(authors),
    )


CORPUS = [
    _report("r01", None, "Energy transition white paper", SEOUL, ["Kim Minji"]),
    _report("r02", 2019, "Urban energy demand outlook", SEOUL, ["Kim Minji", "Lee Jun"]),
    _report("r03", 2019, "Energy poverty old towns", BUSAN, ["Park Hana"]),
    _report("r04", 2020, "Energy efficiency retrofit", SEOUL, ["Kim Minji"]),
    _report("r05", 2020, "Transit energy use", BUSAN, ["Choi Woo"]),
    _report("r06", 2021, "Energy data platform", SEOUL, ["Kim Minji", "Lee Jun"]),
    _report("r07", 2021, "Smart energy grid pilot", BUSAN, ["Park Hana"]),
    _report("r08", 2022, "Housing supply energy standards", SEOUL, ["Lee Jun"]),
    _report("r09", 2022, "Rental housing market", BUSAN, ["Choi Woo"]),
    _report("r10", 2022, "Youth housing welfare", SEOUL, ["Lee Jun", "Park Hana"]),
    _report("r11", 2023, "Housing price trends", BUSAN, ["Choi Woo"]),
    _report("r12", 2023, "Public housing design", SEOUL, ["Lee Jun"]),
    _report("r13", 2023, "Housing loan guarantees", SEOUL, ["Lee Jun"]),
    _report("r14", 2023, "Hydrogen fuel cell buses", SEOUL, ["Kim Minji", "kim minji", "Lee Jun"]),
    _report("r15", 2023, "Hydrogen refueling network", BUSAN, ["Park Hana"]),
    _report("n01", 2022, "Energy security outlook", KEEI, ["Yoon Seo"], scope="national"),
    _report("n02", 2023, "Hydrogen economy roadmap", KEEI, ["Kim Minji"], scope="national"),
    _report("n03", 2023, "Green hydrogen storage", KEEI, ["Yoon Seo"], scope="national"),
    _report("n04", 2023, "Hydrogen safety standards", STEPI, ["Han Bit", "Yoon Seo"], scope="national"),
    _report("n05", 2021, "Semiconductor talent pipeline", STEPI, ["Han Bit"], scope="national"),
]


@pytest.fixture
def reports():
    return list(CORPUS)


@pytest.fixture
def directory():
    return InstituteDirectory(
        national_groups={KEEI: "nrc", STEPI: "nst"},
        local_names=frozenset({SEOUL, BUSAN}),
    )


@pytest.fixture
def index(reports, directory):
    return build_index(reports, frozenset(), directory=directory)


@pytest.fixture
def engine(reports, directory):
    return AnalyticsEngine(reports, directory)
