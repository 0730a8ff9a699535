from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Mapping, Sequence

from loguru import logger

from .models import NaicsSuggestion, ValidationFailure

_CONSTRUCTION_BUILDINGS = ["236115", "236116", "236117", "236118", "236210", "236220"]
_HEAVY_CIVIL = ["237110", "237120", "237130", "237210", "237310", "237990"]
_SPECIALTY_TRADE = [
    "238110", "238120", "238130", "238140", "238150", "238160", "238170", "238190",
    "238210", "238220", "238290", "238310", "238320", "238330", "238340", "238350",
    "238390", "238910", "238990",
]
_PROFESSIONAL = [
    "541110", "541120", "541191", "541199", "541211", "541213", "541214", "541219",
    "541310", "541320", "541330", "541340", "541350", "541360", "541370", "541380",
    "541410", "541420", "541430", "541490", "541511", "541512", "541513", "541519",
    "541611", "541612", "541613", "541614", "541618", "541620", "541690", "541713",
    "541714", "541715", "541720", "541810", "541820", "541830", "541840", "541850",
    "541860", "541870", "541890", "541910", "541921", "541922", "541930", "541940",
    "541990",
]
_ADMIN_SUPPORT = [
    "561110", "561210", "561311", "561312", "561320", "561330", "561410", "561421",
    "561422", "561431", "561439", "561440", "561450", "561491", "561492", "561499",
    "561510", "561520", "561591", "561599", "561611", "561612", "561613", "561621",
    "561622", "561710", "561720", "561730", "561740", "561790", "561910", "561920",
    "561990",
]
_WASTE_MANAGEMENT = [
    "562111", "562112", "562119", "562211", "562212", "562213", "562219", "562910",
    "562920", "562991", "562998",
]
_DURABLE_WHOLESALE = [
    "423110", "423120", "423130", "423140", "423210", "423220", "423310", "423320",
    "423330", "423390", "423410", "423420", "423430", "423440", "423450", "423460",
    "423490", "423510", "423520", "423610", "423620", "423690", "423710", "423720",
    "423730", "423740", "423810", "423820", "423830", "423840", "423850", "423860",
    "423910", "423920", "423930", "423940", "423990",
]
_REPAIR = [
    "811111", "811112", "811113", "811118", "811121", "811122", "811191", "811192",
    "811198", "811211", "811212", "811213", "811219", "811310", "811411", "811412",
    "811420", "811430", "811490",
]
_PERSONAL = [
    "812111", "812112", "812113", "812191", "812199", "812210", "812220", "812310",
    "812320", "812331", "812332", "812910", "812921", "812922", "812930", "812990",
]
_CIVIC = [
    "813110", "813211", "813212", "813219", "813311", "813312", "813319", "813410",
    "813910", "813920", "813930", "813940", "813990",
]

NAICS_EXPANSION: dict[str, list[str]] = {
    "23": _CONSTRUCTION_BUILDINGS + _HEAVY_CIVIL + _SPECIALTY_TRADE,
    "54": list(_PROFESSIONAL),
    "56": _ADMIN_SUPPORT + _WASTE_MANAGEMENT,
    "81": _REPAIR + _PERSONAL + _CIVIC,
    "236": _CONSTRUCTION_BUILDINGS,
    "237": _HEAVY_CIVIL,
    "238": _SPECIALTY_TRADE,
    "541": _PROFESSIONAL,
    "561": _ADMIN_SUPPORT,
    "518": ["518210"],
    "423": _DURABLE_WHOLESALE,
    "811": _REPAIR,
    "812": _PERSONAL,
    "813": _CIVIC,
}

INDUSTRY_NAMES: dict[str, str] = {
    "11": "Agriculture, Forestry, Fishing and Hunting",
    "21": "Mining, Quarrying, and Oil and Gas Extraction",
    "22": "Utilities",
    "23": "Construction",
    "31": "Manufacturing",
    "32": "Manufacturing",
    "33": "Manufacturing",
    "42": "Wholesale Trade",
    "44": "Retail Trade",
    "45": "Retail Trade",
    "48": "Transportation and Warehousing",
    "49": "Transportation and Warehousing",
    "51": "Information",
    "52": "Finance and Insurance",
    "53": "Real Estate and Rental and Leasing",
    "54": "Professional, Scientific, and Technical Services",
    "55": "Management of Companies and Enterprises",
    "56": "Administrative and Support and Waste Management",
    "61": "Educational Services",
    "62": "Health Care and Social Assistance",
    "71": "Arts, Entertainment, and Recreation",
    "72": "Accommodation and Food Services",
    "81": "Other Services (except Public Administration)",
    "92": "Public Administration",
    "236": "Construction of Buildings",
    "237": "Heavy and Civil Engineering Construction",
    "238": "Specialty Trade Contractors",
    "423": "Merchant Wholesalers, Durable Goods",
    "518": "Data Processing and Hosting",
    "541": "Professional, Scientific, and Technical Services",
    "561": "Administrative and Support Services",
    "811": "Repair and Maintenance",
    "812": "Personal and Laundry Services",
    "813": "Religious, Grantmaking, Civic, Professional Organizations",
}

VALID_SECTORS: frozenset[str] = frozenset(code for code in INDUSTRY_NAMES if len(code) == 2)


@dataclass(frozen=True, slots=True)
class NaicsNormalization:
    original: str
    normalized: str
    codes: tuple[str, ...]
    message: str | None


@dataclass(frozen=True, slots=True)
class CollapseRule:
    length: int
    suffix: str
    keep: int

    def matches(self, code: str) -> bool:
        return len(code) == self.length and code.endswith(self.suffix)


# First match wins; sector-level patterns come before subsector-level ones.
COLLAPSE_RULES: tuple[CollapseRule, ...] = (
    CollapseRule(length=6, suffix="0000", keep=2),
    CollapseRule(length=6, suffix="000", keep=3),
    CollapseRule(length=5, suffix="000", keep=2),
    CollapseRule(length=5, suffix="00", keep=3),
    CollapseRule(length=4, suffix="00", keep=2),
    CollapseRule(length=4, suffix="0", keep=3),
)

Expansion = tuple[list[str], str | None]


class NaicsNormalizer:
    def __init__(
        self,
        expansion: Mapping[str, Sequence[str]] | None = None,
        names: Mapping[str, str] | None = None,
        valid_sectors: frozenset[str] | None = None,
        max_suggestions: int = 5,
    ) -> None:
        self.expansion = expansion if expansion is not None else NAICS_EXPANSION
        self.names = names if names is not None else INDUSTRY_NAMES
        self.valid_sectors = valid_sectors if valid_sectors is not None else VALID_SECTORS
        self.max_suggestions = max(1, max_suggestions)
        self._expanders: dict[int, Callable[[str], Expansion]] = {
            2: self._expand_sector,
            3: self._expand_subsector,
            4: self._expand_industry,
            5: self._expand_industry,
            6: self._expand_exact,
        }

    def industry_name(self, prefix: str) -> str | None:
        return self.names.get(prefix)

    def clean(self, code: str) -> str:
        return code.strip().replace("-", "").replace(" ", "")

    def validate(self, code: str) -> ValidationFailure | None:
        cleaned = self.clean(code)
        reason = self._invalid_reason(cleaned)
        if reason is None:
            return None
        suggestions = self.suggest(cleaned)
        logger.info(
            f"Invalid NAICS code {code!r}: {reason}; "
            f"suggestions={[s.code for s in suggestions]}"
        )
        return ValidationFailure(naics_code=code.strip(), message=reason, suggestions=suggestions)

    def normalize(self, code: str) -> NaicsNormalization | ValidationFailure:
        failure = self.validate(code)
        if failure is not None:
            return failure

        original = code.strip()
        cleaned = self.clean(code)
        message: str | None = None
        if cleaned != original:
            message = self._correction_message(original, cleaned)

        collapsed, collapse_message = self._collapse(cleaned)
        if collapse_message:
            message = collapse_message

        codes, expand_message = self._expanders[len(collapsed)](collapsed)
        if expand_message:
            message = expand_message
        if not codes:
            codes = [collapsed]

        logger.debug(f"NAICS {original} -> {collapsed} ({len(codes)} leaf codes)")
        return NaicsNormalization(
            original=original,
            normalized=collapsed,
            codes=tuple(codes),
            message=message,
        )

    def suggest(self, code: str) -> list[NaicsSuggestion]:
        digits = "".join(ch for ch in code if ch.isdigit())
        pool = self._suggestion_pool(digits)
        target = int(digits[:6].ljust(6, "0")) if digits else 0
        ranked = sorted(
            pool,
            key=lambda candidate: (
                -_shared_prefix(candidate, digits),
                abs(int(candidate.ljust(6, "0")) - target),
                candidate,
            ),
        )
        return [
            NaicsSuggestion(code=candidate, name=self._describe(candidate))
            for candidate in ranked[: self.max_suggestions]
        ]

    def _invalid_reason(self, code: str) -> str | None:
        if not code:
            return "NAICS code is empty."
        if not code.isdigit():
            return f'NAICS code "{code}" must contain only digits.'
        if not 2 <= len(code) <= 6:
            return f'NAICS code "{code}" must be between 2 and 6 digits.'
        if code[:2] not in self.valid_sectors:
            return f'NAICS code "{code}" is not recognized: sector {code[:2]} does not exist.'
        if len(code) == 6 and not code.endswith("000"):
            leaves = self.expansion.get(code[:3])
            if leaves and code not in leaves:
                return f'NAICS code "{code}" is not recognized.'
        return None

    def _suggestion_pool(self, digits: str) -> list[str]:
        for size in (3, 2):
            leaves = self.expansion.get(digits[:size]) if len(digits) >= size else None
            if leaves:
                return list(leaves)
        return sorted(code for code in self.names if len(code) in (2, 3))

    def _describe(self, code: str) -> str:
        for size in (len(code), 3, 2):
            name = self.names.get(code[:size])
            if name:
                return name
        return f"NAICS {code}"

    def _collapse(self, code: str) -> tuple[str, str | None]:
        for rule in COLLAPSE_RULES:
            if not rule.matches(code):
                continue
            prefix = code[: rule.keep]
            if rule.keep == 2:
                name = self.names.get(prefix) or f"Sector {prefix}"
                message = f"NAICS {code} was expanded to search all codes in the {name} sector."
            else:
                name = self.names.get(prefix) or f"{prefix}xx industry"
                message = f"NAICS {code} was expanded to search all {prefix}xx codes in the {name} sector."
            logger.info(f"NAICS {code} ends in {rule.suffix}; collapsing to {prefix}")
            return prefix, message
        return code, None

    def _expand_sector(self, code: str) -> Expansion:
        return list(self.expansion.get(code, ())), None

    def _expand_subsector(self, code: str) -> Expansion:
        leaves = self.expansion.get(code)
        if leaves:
            return list(leaves), None
        sector = code[:2]
        leaves = self.expansion.get(sector)
        if leaves:
            name = self.names.get(sector) or f"Sector {sector}"
            return list(leaves), (
                f"NAICS {code} is not a standard code. "
                f"Expanded to search all codes in the {name} sector."
            )
        return [], None

    def _expand_industry(self, code: str) -> Expansion:
        subsector = code[:3]
        leaves = self.expansion.get(subsector)
        if leaves:
            name = self.names.get(subsector) or f"{subsector}xx industry"
            return list(leaves), (
                f"NAICS {code} expanded to search all {subsector}xx codes "
                f"in the {name} subsector."
            )
        sector = code[:2]
        leaves = self.expansion.get(sector)
        if leaves:
            name = self.names.get(sector) or f"Sector {sector}"
            return list(leaves), f"NAICS {code} expanded to search all codes in the {name} sector."
        return [], None

    def _expand_exact(self, code: str) -> Expansion:
        return [code], None

    def _correction_message(self, original: str, cleaned: str) -> str:
        name = self._describe(cleaned)
        return f"NAICS {original} was automatically normalized to {cleaned} ({name})."


def _shared_prefix(left: str, right: str) -> int:
    count = 0
    for a, b in zip(left, right):
        if a != b:
            break
        count += 1
    return count
