from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping, Sequence

DOD_PARENT_MARKERS: tuple[str, ...] = ("DEPARTMENT OF DEFENSE", "DEPT OF DEFENSE", "DOD")

DOD_DEPARTMENT_MARKERS: tuple[str, ...] = (
    "DEPARTMENT OF THE NAVY",
    "DEPT OF THE NAVY",
    "DEPARTMENT OF THE ARMY",
    "DEPT OF THE ARMY",
    "DEPARTMENT OF THE AIR FORCE",
    "DEPT OF THE AIR FORCE",
)

# Broader net used when a caller asks for civilian agencies only.
DEFENSE_SUB_AGENCY_MARKERS: tuple[str, ...] = (
    "DEPARTMENT OF THE NAVY",
    "DEPARTMENT OF THE ARMY",
    "DEPARTMENT OF THE AIR FORCE",
    "DEFENSE LOGISTICS AGENCY",
    "DEFENSE INFORMATION",
    "DEFENSE CONTRACT",
)
DEFENSE_NAME_MARKERS: tuple[str, ...] = ("NAVFAC", "NAVSEA", "USACE", "ARMY CORPS", "AIR FORCE")


@dataclass(frozen=True, slots=True)
class StaticCommand:
    abbreviation: str
    name: str
    weight: Decimal


def _commands(*rows: tuple[str, str, str]) -> tuple[StaticCommand, ...]:
    return tuple(StaticCommand(abbr, name, Decimal(weight)) for abbr, name, weight in rows)


# Ordered by typical share of the department's contract obligations.
COMMAND_TABLE: dict[str, tuple[StaticCommand, ...]] = {
    "DEPARTMENT OF THE NAVY": _commands(
        ("NAVSEA", "Naval Sea Systems Command", "0.30"),
        ("NAVAIR", "Naval Air Systems Command", "0.22"),
        ("NAVFAC", "Naval Facilities Engineering Systems Command", "0.16"),
        ("NAVSUP", "Naval Supply Systems Command", "0.12"),
        ("NAVWAR", "Naval Information Warfare Systems Command", "0.10"),
        ("MCSC", "Marine Corps Systems Command", "0.10"),
    ),
    "DEPARTMENT OF THE ARMY": _commands(
        ("ACC", "Army Contracting Command", "0.32"),
        ("USACE", "U.S. Army Corps of Engineers", "0.28"),
        ("MICC", "Mission and Installation Contracting Command", "0.14"),
        ("AMC", "Army Materiel Command", "0.12"),
        ("MEDCOM", "Army Medical Command", "0.08"),
        ("NGB", "Army National Guard", "0.06"),
    ),
    "DEPARTMENT OF THE AIR FORCE": _commands(
        ("AFLCMC", "Air Force Life Cycle Management Center", "0.34"),
        ("AFSC", "Air Force Sustainment Center", "0.20"),
        ("SSC", "Space Systems Command", "0.18"),
        ("AFMC", "Air Force Materiel Command", "0.12"),
        ("AFICC", "Air Force Installation Contracting Center", "0.08"),
        ("AFDW", "Air Force District of Washington", "0.08"),
    ),
    "DEPARTMENT OF DEFENSE": _commands(
        ("DLA", "Defense Logistics Agency", "0.40"),
        ("DHA", "Defense Health Agency", "0.20"),
        ("DISA", "Defense Information Systems Agency", "0.15"),
        ("MDA", "Missile Defense Agency", "0.10"),
        ("DARPA", "Defense Advanced Research Projects Agency", "0.10"),
        ("WHS", "Washington Headquarters Services", "0.05"),
    ),
}

_DEPARTMENT_ALIASES: dict[str, str] = {
    "DEPT OF THE NAVY": "DEPARTMENT OF THE NAVY",
    "DEPT OF THE ARMY": "DEPARTMENT OF THE ARMY",
    "DEPT OF THE AIR FORCE": "DEPARTMENT OF THE AIR FORCE",
    "DEPT OF DEFENSE": "DEPARTMENT OF DEFENSE",
    "DOD": "DEPARTMENT OF DEFENSE",
}

# (markers, command) checked in order against the upper-cased office name.
COMMAND_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("NAVFAC", "NAVAL FACILITIES"), "NAVFAC"),
    (("NAVSEA", "NAVAL SEA SYSTEMS"), "NAVSEA"),
    (("NAVAIR", "NAVAL AIR SYSTEMS", "NAVAL AIR WARFARE"), "NAVAIR"),
    (("NAVWAR", "SPAWAR", "NAVAL INFORMATION WARFARE"), "NAVWAR"),
    (("MARINE CORPS SYSTEMS COMMAND", "MARCORSYSCOM"), "Marine Corps Systems Command"),
    (("NAVAL SPECIAL WARFARE",), "Department of the Navy"),
    (("USACE", "CORPS OF ENGINEERS", "ENGINEER DISTRICT"), "USACE"),
    (("ARMY CONTRACTING COMMAND", "ACC-"), "Army Contracting Command"),
    (("ARMY MATERIEL COMMAND",), "Army Materiel Command"),
    (("MICC", "MISSION AND INSTALLATION CONTRACTING"), "Army Contracting Command"),
    (("TACOM", "TANK-AUTOMOTIVE", "CECOM", "COMMUNICATIONS-ELECTRONICS"), "Army Materiel Command"),
    (("AMCOM", "AVIATION AND MISSILE"), "Army Materiel Command"),
    (("USPFO", "PROPERTY AND FISCAL"), "Department of the Army"),
    (("AFMC", "AIR FORCE MATERIEL COMMAND", "AFLCMC", "LIFE CYCLE MANAGEMENT"), "Air Force Materiel Command"),
    (("AFSC", "AIR FORCE SUSTAINMENT"), "Air Force Sustainment Center"),
    (("CONTRACTING SQUADRON",), "Department of the Air Force"),
    (("SPACE SYSTEMS COMMAND",), "Space Systems Command"),
    (("DLA", "DEFENSE LOGISTICS"), "Defense Logistics Agency"),
    (("DISA", "DEFENSE INFORMATION SYSTEMS"), "Defense Information Systems Agency"),
    (("DCMA", "DEFENSE CONTRACT MANAGEMENT"), "Defense Contract Management Agency"),
    (("MISSILE DEFENSE",), "Missile Defense Agency"),
    (("DARPA", "DEFENSE ADVANCED RESEARCH"), "DARPA"),
    (("DEFENSE HEALTH",), "Defense Health Agency"),
)

_BRANCH_NAME_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (
        ("NAVAL", "NAVY", "NAVFAC", "NAVSEA", "NAVAIR", "NAVWAR", "SPAWAR", "MARINE", "FLEET", "SUBMARINE"),
        "Department of the Navy",
    ),
    (
        ("ARMY", "FORT ", "MICC", "USACE", "ACC ", "ACA ", "TACOM", "CECOM", "AMCOM", "PEO "),
        "Department of the Army",
    ),
    (
        ("AIR FORCE", "AFMC", "AFLCMC", "CONTRACTING SQUADRON", "CONS", "AFDW", "AFSPC", "USAF"),
        "Department of the Air Force",
    ),
)

_OFFICE_ID_BRANCHES: dict[str, str] = {
    "N": "Department of the Navy",
    "M": "Department of the Navy",
    "W": "Department of the Army",
    "F": "Department of the Air Force",
}

_SQUADRON_PATTERN = re.compile(r"\d+\s*CONS\b")


def canonical_department(name: str | None) -> str | None:
    if not name:
        return None
    upper = " ".join(name.upper().split())
    upper = _DEPARTMENT_ALIASES.get(upper, upper)
    for alias, canonical in _DEPARTMENT_ALIASES.items():
        if len(alias) > 3 and alias in upper:
            upper = upper.replace(alias, canonical)
    return upper


def commands_for(
    name: str | None,
    table: Mapping[str, Sequence[StaticCommand]] | None = None,
) -> tuple[StaticCommand, ...]:
    department = canonical_department(name)
    if department is None:
        return ()
    return tuple((table if table is not None else COMMAND_TABLE).get(department, ()))


def is_dod_entity(parent_agency: str | None, sub_agency: str | None, name: str | None = None) -> bool:
    parent = (parent_agency or "").upper()
    sub = (sub_agency or "").upper()
    office = (name or "").upper()
    if any(marker in parent for marker in DOD_PARENT_MARKERS):
        return True
    return any(marker in sub or marker in office for marker in DOD_DEPARTMENT_MARKERS)


def is_defense_related(parent_agency: str | None, sub_agency: str | None, name: str | None) -> bool:
    parent = (parent_agency or "").upper()
    sub = (sub_agency or "").upper()
    office = (name or "").upper()
    return (
        any(marker in parent for marker in DOD_PARENT_MARKERS)
        or any(marker in sub for marker in DEFENSE_SUB_AGENCY_MARKERS)
        or any(marker in office for marker in DEFENSE_NAME_MARKERS)
    )


def detect_command(office_name: str, office_id: str | None = None) -> str | None:
    upper = office_name.upper()
    for markers, command in COMMAND_RULES:
        if any(marker in upper for marker in markers):
            return command
    if office_id and office_id.upper().startswith("W50S"):
        return "Army Contracting Command"
    if _SQUADRON_PATTERN.search(upper):
        return "Department of the Air Force"
    return None


def detect_service_branch(office_name: str, office_id: str | None, agency_name: str | None) -> str:
    agency = (agency_name or "").upper()
    if "NAVY" in agency or "MARINE" in agency:
        return "Department of the Navy"
    if "ARMY" in agency:
        return "Department of the Army"
    if "AIR FORCE" in agency:
        return "Department of the Air Force"

    upper = office_name.upper()
    for markers, branch in _BRANCH_NAME_RULES:
        if any(marker in upper for marker in markers):
            return branch

    if office_id:
        prefix = office_id[0].upper()
        if prefix in _OFFICE_ID_BRANCHES:
            return _OFFICE_ID_BRANCHES[prefix]
        if prefix == "H":
            return "Department of the Navy" if office_id[1:2] == "9" else "Department of Defense"

    if agency_name and "DEFENSE" not in agency:
        return agency_name
    return "Department of Defense"
