from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any


class Certification(str, Enum):
    NONE = "none"
    WOMEN_OWNED = "Women Owned"
    HUBZONE = "HUBZone"
    EIGHT_A = "8(a) Certified"
    SMALL_BUSINESS = "Small Business"
    DOT_CERTIFIED = "DOT Certified"
    NATIVE_AMERICAN = "Native American/Tribal"


class VeteranStatus(str, Enum):
    NOT_APPLICABLE = "Not Applicable"
    VETERAN_OWNED = "Veteran Owned"
    SERVICE_DISABLED = "Service Disabled Veteran"


@dataclass(frozen=True, slots=True)
class SearchCriteria:
    certification: Certification = Certification.NONE
    naics_code: str | None = None
    zip_code: str | None = None
    veteran_status: VeteranStatus = VeteranStatus.NOT_APPLICABLE
    psc_code: str | None = None
    exclude_dod: bool = False

    @property
    def has_naics(self) -> bool:
        return bool(self.naics_code and self.naics_code.strip())

    @property
    def has_certification(self) -> bool:
        return self.certification is not Certification.NONE


@dataclass(frozen=True, slots=True)
class AwardRecord:
    award_id: str | None
    recipient: str | None
    awarding_agency: str | None
    awarding_sub_agency: str | None
    awarding_office: str | None
    agency_code: str | None
    sub_agency_code: str | None
    agency_slug: str | None
    awarding_agency_id: str | None
    naics_code: str | None
    state: str | None
    amount: Decimal
    set_aside_type: str | None
    offers_received: int | None

    @classmethod
    def from_api(cls, row: dict[str, Any]) -> AwardRecord:
        return cls(
            award_id=_to_str(row.get("Award ID")),
            recipient=_to_str(row.get("Recipient Name")),
            awarding_agency=_to_str(row.get("Awarding Agency")),
            awarding_sub_agency=_to_str(row.get("Awarding Sub Agency")),
            awarding_office=_to_str(row.get("Awarding Office")),
            agency_code=_to_str(row.get("Awarding Agency Code")),
            sub_agency_code=_to_str(row.get("Awarding Sub Agency Code")),
            agency_slug=_to_str(row.get("agency_slug")),
            awarding_agency_id=_to_str(row.get("awarding_agency_id")),
            naics_code=_to_str(row.get("NAICS Code")),
            state=_to_str(row.get("Place of Performance State Code")),
            amount=to_decimal(row.get("Award Amount")),
            set_aside_type=_to_str(row.get("Set-Aside Type")),
            offers_received=_to_int(row.get("Number of Offers Received")),
        )


@dataclass(slots=True)
class OfficeAggregate:
    key: str
    agency_id: str
    name: str
    contracting_office: str
    sub_agency: str
    parent_agency: str
    has_specific_office: bool
    agency_code: str = ""
    sub_agency_code: str = ""
    location: str = "Unknown"
    spending: Decimal = Decimal("0")
    contract_count: int = 0
    command: str | None = None
    source: str = "usaspending"

    @property
    def searchable_office_code(self) -> str:
        return self.sub_agency_code or self.agency_code or ""

    def as_payload(self) -> dict[str, Any]:
        return {
            "id": self.key,
            "agencyId": self.agency_id,
            "name": self.name,
            "contractingOffice": self.contracting_office,
            "subAgency": self.sub_agency,
            "parentAgency": self.parent_agency,
            "hasSpecificOffice": self.has_specific_office,
            "agencyCode": self.agency_code,
            "subAgencyCode": self.sub_agency_code,
            "searchableOfficeCode": self.searchable_office_code,
            "location": self.location,
            "setAsideSpending": float(self.spending),
            "contractCount": self.contract_count,
            "command": self.command,
            "source": self.source,
        }


@dataclass(slots=True)
class NaicsSuggestion:
    code: str
    name: str


@dataclass(slots=True)
class AlternativeSearch:
    label: str
    description: str
    criteria: SearchCriteria
    estimated_results: int | None = None

    def as_payload(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "description": self.description,
            "filters": {
                "naicsCode": self.criteria.naics_code,
                "zipCode": self.criteria.zip_code,
                "businessType": _enum_or_none(self.criteria.certification, Certification.NONE),
                "veteranStatus": _enum_or_none(
                    self.criteria.veteran_status, VeteranStatus.NOT_APPLICABLE
                ),
            },
            "estimatedResults": self.estimated_results,
        }


@dataclass(slots=True)
class SearchResult:
    offices: list[OfficeAggregate]
    total_spending: Decimal
    naics_correction_message: str | None = None
    adjustments: list[str] = field(default_factory=list)
    was_auto_adjusted: bool = False
    location_tier: int = 1
    searched_state: str | None = None
    alternative_searches: list[AlternativeSearch] = field(default_factory=list)
    success: bool = True

    @property
    def total_count(self) -> int:
        return len(self.offices)

    def as_payload(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "agencies": [office.as_payload() for office in self.offices],
            "totalCount": self.total_count,
            "totalSpending": float(self.total_spending),
            "naicsCorrectionMessage": self.naics_correction_message,
            "adjustments": self.adjustments,
            "alternativeSearches": [alt.as_payload() for alt in self.alternative_searches]
            or None,
            "wasAutoAdjusted": self.was_auto_adjusted,
            "locationTier": self.location_tier,
            "searchedState": self.searched_state,
        }


@dataclass(slots=True)
class ValidationFailure:
    naics_code: str
    message: str
    suggestions: list[NaicsSuggestion]
    error: str = "invalid_naics"
    success: bool = False

    def as_payload(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "error": self.error,
            "naicsValidationError": self.message,
            "suggestedNaicsCodes": [{"code": s.code, "name": s.name} for s in self.suggestions],
            "agencies": [],
            "totalCount": 0,
            "totalSpending": 0,
            "message": (
                f'The NAICS code "{self.naics_code}" does not exist. Please select from the '
                "suggested codes below or enter a valid NAICS code."
            ),
        }


def to_decimal(value: Any) -> Decimal:
    if value is None or isinstance(value, bool):
        return Decimal("0")
    try:
        amount = Decimal(str(value).replace(",", "").strip() or "0")
    except InvalidOperation:
        return Decimal("0")
    if not amount.is_finite():
        return Decimal("0")
    return amount


def _enum_or_none(value: Enum, empty: Enum) -> str | None:
    return None if value is empty else value.value


def _to_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _to_str(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    return str(value).strip() or None
