from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Sequence

from .models import Certification, SearchCriteria, VeteranStatus

CONTRACT_AWARD_TYPES: tuple[str, ...] = ("A", "B", "C", "D")

SET_ASIDE_CODES: dict[Certification, list[str]] = {
    Certification.WOMEN_OWNED: ["WOSB", "EDWOSB"],
    Certification.HUBZONE: ["HZBZ", "HUBZ"],
    Certification.EIGHT_A: ["8A", "8AN", "8A COMPETED", "8A SOLE SOURCE"],
    Certification.SMALL_BUSINESS: [
        "SBA",
        "SBP",
        "SMALL BUSINESS SET-ASIDE",
        "TOTAL SMALL BUSINESS SET-ASIDE (FAR 19.5)",
    ],
    Certification.DOT_CERTIFIED: ["SBP"],
    Certification.NATIVE_AMERICAN: ["IND"],
}

VETERAN_SET_ASIDE_CODES: dict[VeteranStatus, list[str]] = {
    VeteranStatus.VETERAN_OWNED: ["VOSB", "VO"],
    VeteranStatus.SERVICE_DISABLED: ["SDVOSB", "SDVOSBC"],
}

SMALL_BUSINESS_CODES: tuple[str, ...] = tuple(SET_ASIDE_CODES[Certification.SMALL_BUSINESS])

ALL_SMALL_BUSINESS_CODES: tuple[str, ...] = (
    "SBA", "SBP", "8A", "8AN", "WOSB", "EDWOSB", "HZBZ", "HUBZ", "SDVOSB", "VOSB",
)


@dataclass(slots=True)
class QueryFilter:
    start_date: str
    end_date: str
    award_types: tuple[str, ...] = CONTRACT_AWARD_TYPES
    naics_codes: tuple[str, ...] = ()
    set_aside_codes: tuple[str, ...] = ()
    states: tuple[str, ...] = ()
    psc_codes: tuple[str, ...] = field(default_factory=tuple)

    @property
    def active_filter_count(self) -> int:
        return sum(1 for value in (self.naics_codes, self.set_aside_codes, self.states) if value)

    def to_api(self) -> dict[str, Any]:
        filters: dict[str, Any] = {
            "award_type_codes": list(self.award_types),
            "time_period": [{"start_date": self.start_date, "end_date": self.end_date}],
        }
        if self.naics_codes:
            filters["naics_codes"] = list(self.naics_codes)
        if self.set_aside_codes:
            filters["set_aside_type_codes"] = list(self.set_aside_codes)
        if self.psc_codes:
            filters["psc_codes"] = list(self.psc_codes)
        if self.states:
            filters["place_of_performance_locations"] = [
                {"country": "USA", "state": state} for state in self.states
            ]
        return filters


def fiscal_window(today: date, years: int = 3) -> tuple[str, str]:
    """Start and end dates of the trailing `years` completed federal fiscal years."""
    current_fy = today.year + 1 if today.month >= 10 else today.year
    last_complete = current_fy - 1
    first = last_complete - years + 1
    return f"{first - 1}-10-01", f"{last_complete}-09-30"


def set_aside_codes_for(criteria: SearchCriteria) -> list[str]:
    codes: list[str] = []
    codes.extend(SET_ASIDE_CODES.get(criteria.certification, []))
    codes.extend(VETERAN_SET_ASIDE_CODES.get(criteria.veteran_status, []))
    return codes


def build_filter(
    criteria: SearchCriteria,
    naics_codes: Sequence[str] = (),
    state: str | None = None,
    today: date | None = None,
) -> QueryFilter:
    start, end = fiscal_window(today or date.today())
    psc: tuple[str, ...] = ()
    if not criteria.has_naics and criteria.psc_code and criteria.psc_code.strip():
        psc = (criteria.psc_code.strip().upper(),)
    return QueryFilter(
        start_date=start,
        end_date=end,
        naics_codes=tuple(naics_codes),
        set_aside_codes=tuple(set_aside_codes_for(criteria)),
        states=(state,) if state else (),
        psc_codes=psc,
    )
