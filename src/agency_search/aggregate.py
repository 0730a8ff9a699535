from __future__ import annotations

import re
from decimal import Decimal
from typing import Iterable

from loguru import logger

from .models import AwardRecord, OfficeAggregate

# Cryptic awarding-office labels seen in award data.
OFFICE_NAME_ENHANCEMENTS: dict[str, str] = {
    "Endist Omaha": "U.S. Army Engineer District, Omaha",
    "W071": "U.S. Army Engineer District, Omaha",
    "Endist Sacramento": "U.S. Army Engineer District, Sacramento",
    "Endist Louisville": "U.S. Army Engineer District, Louisville",
    "Endist Norfolk": "U.S. Army Engineer District, Norfolk",
    "USA Eng Spt Ctr Huntsvil": "U.S. Army Engineering and Support Center, Huntsville, Alabama",
    "2V6": "U.S. Army Engineering and Support Center, Huntsville, Alabama",
    "ACC-PICA": "Army Contracting Command - Program Integration and Contracting Activity",
    "W6QK": "Army Contracting Command",
    "ACC-APG Natick": "Army Contracting Command - Aberdeen Proving Ground, Natick",
    "ACC-RSA": "Army Contracting Command - Redstone Arsenal",
    "ACC-APG": "Army Contracting Command - Aberdeen Proving Ground",
    "Afmc Wpafb Oh": "Air Force Materiel Command - Wright-Patterson AFB, Ohio",
    "Afsc Maxwell Afb Al": "Air Force Sustainment Center - Maxwell AFB, Alabama",
    "772 ESS PKD": "772 Enterprise Sourcing Squadron - Wright-Patterson AFB",
    "Navfac Northwest": "Naval Facilities Engineering Command Northwest",
    "Navfac Atlantic": "Naval Facilities Engineering Command Atlantic",
    "Navfac Pacific": "Naval Facilities Engineering Command Pacific",
    "Navsup Flc Norfolk": "Naval Supply Systems Command Fleet Logistics Center Norfolk",
    "Cbp Oaq": "U.S. Customs and Border Protection - Office of Acquisition",
}

WORD_EXPANSIONS: dict[str, str] = {
    "Svc": "Service",
    "Dept": "Department",
    "Hq": "Headquarters",
    "Cmd": "Command",
    "Ctr": "Center",
}

_WORD_PATTERN = re.compile(r"\b(" + "|".join(WORD_EXPANSIONS) + r")\b")


def enhance_office_name(name: str | None) -> str | None:
    if not name:
        return name
    if name in OFFICE_NAME_ENHANCEMENTS:
        return OFFICE_NAME_ENHANCEMENTS[name]
    # longest label first so "ACC-APG Natick" wins over "ACC-APG"
    for label in sorted(OFFICE_NAME_ENHANCEMENTS, key=len, reverse=True):
        if label in name:
            return OFFICE_NAME_ENHANCEMENTS[label]
    return _WORD_PATTERN.sub(lambda match: WORD_EXPANSIONS[match.group(1)], name)


def agency_identifier(record: AwardRecord) -> str:
    return record.agency_slug or record.awarding_agency_id or record.awarding_agency or "Unknown Agency"


def office_key(record: AwardRecord) -> str:
    agency = record.awarding_agency or "Unknown Agency"
    sub_agency = enhance_office_name(record.awarding_sub_agency or agency) or agency
    office = enhance_office_name(record.awarding_office) if record.awarding_office else sub_agency
    return f"{agency_identifier(record)}|{sub_agency}|{office}"


def count_distinct_offices(records: Iterable[AwardRecord]) -> int:
    return len({office_key(record) for record in records})


def aggregate_offices(records: Iterable[AwardRecord]) -> list[OfficeAggregate]:
    offices: dict[str, OfficeAggregate] = {}
    record_count = 0

    for record in records:
        record_count += 1
        key = office_key(record)
        office = offices.get(key)
        if office is None:
            office = _new_office(key, record)
            offices[key] = office
        office.spending += record.amount
        office.contract_count += 1

    ranked = rank_offices(offices.values())
    logger.info(f"Aggregated {record_count} awards into {len(ranked)} contracting offices")
    return ranked


def rank_offices(offices: Iterable[OfficeAggregate]) -> list[OfficeAggregate]:
    # sorted() is stable with reverse=True, so ties keep insertion order
    return sorted(offices, key=lambda office: office.spending, reverse=True)


def total_spending(offices: Iterable[OfficeAggregate]) -> Decimal:
    return sum((office.spending for office in offices), Decimal("0"))


def _new_office(key: str, record: AwardRecord) -> OfficeAggregate:
    agency = record.awarding_agency or "Unknown Agency"
    raw_sub_agency = record.awarding_sub_agency or agency
    sub_agency = enhance_office_name(raw_sub_agency) or raw_sub_agency
    raw_office = record.awarding_office
    office_name = (enhance_office_name(raw_office) or raw_office) if raw_office else sub_agency

    return OfficeAggregate(
        key=key,
        agency_id=agency_identifier(record),
        name=office_name,
        contracting_office=office_name,
        sub_agency=sub_agency,
        parent_agency=agency,
        has_specific_office=bool(raw_office) and raw_office != raw_sub_agency,
        agency_code=record.agency_code or "",
        sub_agency_code=record.sub_agency_code or "",
        location=record.state or "Unknown",
    )
