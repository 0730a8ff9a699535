from __future__ import annotations

import re
import time
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field, replace
from decimal import Decimal

import httpx
from loguru import logger

from .commands import detect_command, detect_service_branch
from .config import AppConfig
from .models import OfficeAggregate, to_decimal

FEED_PAGE_SIZE = 10


@dataclass(slots=True)
class FpdsOffice:
    office_id: str
    office_name: str
    agency_id: str
    agency_name: str
    department_id: str
    department_name: str
    obligated_amount: Decimal = Decimal("0")
    contract_count: int = 0

    @property
    def key(self) -> str:
        return f"{self.office_id}|{self.office_name}"


@dataclass(slots=True)
class FpdsAward:
    office: FpdsOffice
    naics_code: str | None
    vendor_name: str | None
    obligated_amount: Decimal
    signed_date: str | None
    state: str | None


@dataclass(slots=True)
class FpdsResult:
    awards: list[FpdsAward] = field(default_factory=list)
    offices: dict[str, FpdsOffice] = field(default_factory=dict)

    def add(self, award: FpdsAward) -> None:
        self.awards.append(award)
        existing = self.offices.get(award.office.key)
        if existing is None:
            self.offices[award.office.key] = award.office
            return
        existing.obligated_amount += award.obligated_amount
        existing.contract_count += 1

    def merge(self, other: FpdsResult) -> None:
        self.awards.extend(other.awards)
        for key, office in other.offices.items():
            existing = self.offices.get(key)
            if existing is None:
                self.offices[key] = replace(office)
                continue
            existing.obligated_amount += office.obligated_amount
            existing.contract_count += office.contract_count


def fetch_fpds_by_naics(
    client: httpx.Client,
    naics_code: str,
    config: AppConfig,
    max_records: int | None = None,
) -> FpdsResult:
    limit = max_records or config.fpds.max_records
    max_pages = -(-limit // FEED_PAGE_SIZE)
    url: str | None = config.fpds.base_url
    params: dict[str, str] | None = {"FEEDNAME": "PUBLIC", "q": f"PRINCIPAL_NAICS_CODE:{naics_code}"}
    headers = {"User-Agent": config.user_agent, "Accept": "application/xml"}
    result = FpdsResult()
    fetched = 0

    for page in range(max_pages):
        if url is None or fetched >= limit:
            break
        try:
            resp = client.get(url, params=params, headers=headers, timeout=config.fpds.timeout_seconds)
            resp.raise_for_status()
            root = _parse_feed(resp.text)
        except (httpx.HTTPError, ET.ParseError) as exc:
            logger.warning(f"FPDS page {page + 1} for NAICS {naics_code} failed: {exc}")
            break

        entries = [child for child in root if _local(child.tag) == "entry"]
        if not entries:
            break
        for entry in entries:
            award = parse_award_entry(entry)
            if award:
                result.add(award)
        fetched += len(entries)
        logger.debug(f"FPDS page {page + 1}: {len(entries)} entries (total {fetched})")

        url, params = _next_link(root), None
        if url and config.fpds.page_delay_seconds > 0:
            time.sleep(config.fpds.page_delay_seconds)

    logger.info(f"FPDS NAICS {naics_code}: {len(result.awards)} awards, {len(result.offices)} offices")
    return result


def parse_award_entry(entry: ET.Element) -> FpdsAward | None:
    purchaser = _first(entry, "purchaserInformation")
    if purchaser is None:
        return None

    agency_el = _first(purchaser, "contractingOfficeAgencyID")
    office_el = _first(purchaser, "contractingOfficeID")
    amount = to_decimal(_text(_first(entry, "obligatedAmount")))
    office = FpdsOffice(
        office_id=_text(office_el) or "",
        office_name=clean_office_name(_attr(office_el, "name") or "Unknown Office"),
        agency_id=_text(agency_el) or "",
        agency_name=_attr(agency_el, "name") or "Unknown",
        department_id=_attr(agency_el, "departmentID") or "",
        department_name=_attr(agency_el, "departmentName") or "",
        obligated_amount=amount,
        contract_count=1,
    )

    place = _first(entry, "placeOfPerformance")
    return FpdsAward(
        office=office,
        naics_code=_text(_first(entry, "principalNAICSCode")),
        vendor_name=_text(_first(entry, "vendorName")),
        obligated_amount=amount,
        signed_date=_text(_first(entry, "signedDate")),
        state=_text(_first(place, "stateCode")) if place is not None else None,
    )


def map_offices(result: FpdsResult) -> list[OfficeAggregate]:
    offices: list[OfficeAggregate] = []
    for key, office in result.offices.items():
        branch = detect_service_branch(office.office_name, office.office_id, office.agency_name)
        offices.append(
            OfficeAggregate(
                key=f"fpds|{key}",
                agency_id=office.department_id or office.agency_id,
                name=office.office_name,
                contracting_office=office.office_name,
                sub_agency=branch,
                parent_agency=branch,
                has_specific_office=True,
                agency_code=office.department_id,
                sub_agency_code=office.agency_id,
                location="USA",
                spending=office.obligated_amount,
                contract_count=office.contract_count,
                command=detect_command(office.office_name, office.office_id),
                source="fpds",
            )
        )
    offices.sort(key=lambda item: item.spending, reverse=True)
    return offices


_DODAAC_PREFIX = re.compile(r"^[A-Z][0-9][A-Z0-9]{2}\s+", re.IGNORECASE)
_SQUADRON = re.compile(r"(\d+)\s*CONS(?:/\w*)?", re.IGNORECASE)
_ABBREVIATIONS: tuple[tuple[str, str], ...] = (
    ("NAVFAC", "Naval Facilities Engineering Command"),
    ("NAVSEA", "Naval Sea Systems Command"),
    ("NAVAIR", "Naval Air Systems Command"),
    ("NAVWAR", "Naval Information Warfare Systems Command"),
    ("SPAWAR", "Space and Naval Warfare Systems Command"),
    ("USACE", "U.S. Army Corps of Engineers"),
    ("AFLCMC", "Air Force Life Cycle Management Center"),
    ("AFMC", "Air Force Materiel Command"),
    ("AFSC", "Air Force Sustainment Center"),
    ("DLA", "Defense Logistics Agency"),
    ("DCMA", "Defense Contract Management Agency"),
    ("DISA", "Defense Information Systems Agency"),
    ("MDA", "Missile Defense Agency"),
    ("NGA", "National Geospatial-Intelligence Agency"),
)
_KEEP_UPPER = {"MICC", "USA", "DOD", "U.S."}


def clean_office_name(name: str) -> str:
    cleaned = _DODAAC_PREFIX.sub("", name.strip())
    cleaned = re.sub(r"^ACA,?\s+", "Army Contracting Activity - ", cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r"MICC-?", "MICC ", cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r"ACC-", "Army Contracting Command - ", cleaned, flags=re.IGNORECASE)
    cleaned = _SQUADRON.sub(lambda m: f"{_ordinal(int(m.group(1)))} Contracting Squadron", cleaned)
    for abbreviation, full_name in _ABBREVIATIONS:
        cleaned = re.sub(rf"\b{abbreviation}\b", full_name, cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r"\bFt\b", "Fort", cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r"\bJb\b", "Joint Base", cleaned, flags=re.IGNORECASE)
    cleaned = " ".join(cleaned.split())
    if re.search(r"[A-Z]{2,}", cleaned):
        cleaned = " ".join(_title_word(word) for word in cleaned.split(" "))
    return cleaned


def _title_word(word: str) -> str:
    if word.upper() in _KEEP_UPPER:
        return word.upper()
    if not word.isupper():
        return word
    return "-".join(_capitalize(part) for part in word.lower().split("-"))


def _capitalize(part: str) -> str:
    if part.startswith("mc") and len(part) > 2:
        return "Mc" + part[2].upper() + part[3:]
    return part[:1].upper() + part[1:]


def _ordinal(number: int) -> str:
    suffix = "th"
    if not 10 <= number % 100 <= 20:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")
    return f"{number}{suffix}"


def _parse_feed(content: str) -> ET.Element:
    try:
        return ET.fromstring(content)
    except ET.ParseError:
        return ET.fromstring(_sanitize_xml(content))


def _sanitize_xml(content: str) -> str:
    cleaned = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]", "", content)
    return re.sub(
        r"&(?![a-zA-Z]{2,6};|#\d{2,5};|#x[0-9a-fA-F]{2,5};)",
        "&amp;",
        cleaned,
    )


def _next_link(root: ET.Element) -> str | None:
    for child in root:
        if _local(child.tag) == "link" and child.get("rel") == "next":
            return child.get("href")
    return None


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _first(element: ET.Element | None, name: str) -> ET.Element | None:
    if element is None:
        return None
    for child in element.iter():
        if _local(child.tag) == name:
            return child
    return None


def _text(element: ET.Element | None) -> str | None:
    if element is None or element.text is None:
        return None
    return element.text.strip() or None


def _attr(element: ET.Element | None, name: str) -> str | None:
    if element is None:
        return None
    value = element.get(name)
    return value.strip() if value and value.strip() else None
