from __future__ import annotations

from dataclasses import dataclass

# Inclusive three-digit ZIP prefix ranges.
_ZIP_PREFIX_RANGES: tuple[tuple[int, int, str], ...] = (
    (10, 27, "MA"), (28, 29, "RI"), (30, 38, "NH"), (39, 49, "ME"), (50, 54, "VT"),
    (60, 69, "CT"), (70, 89, "NJ"), (100, 149, "NY"), (150, 196, "PA"), (197, 199, "DE"),
    (200, 200, "DC"), (201, 201, "VA"), (202, 205, "DC"),
    (206, 219, "MD"), (220, 246, "VA"), (247, 268, "WV"),
    (270, 289, "NC"), (290, 299, "SC"), (300, 319, "GA"), (320, 349, "FL"),
    (350, 369, "AL"), (370, 385, "TN"), (386, 397, "MS"), (400, 427, "KY"),
    (430, 459, "OH"), (460, 479, "IN"), (480, 499, "MI"), (500, 528, "IA"),
    (530, 549, "WI"), (550, 567, "MN"), (570, 577, "SD"), (580, 588, "ND"),
    (590, 599, "MT"), (600, 629, "IL"), (630, 658, "MO"), (660, 679, "KS"),
    (680, 693, "NE"), (700, 714, "LA"), (716, 729, "AR"), (730, 749, "OK"),
    (750, 799, "TX"), (800, 816, "CO"), (820, 831, "WY"), (832, 838, "ID"),
    (840, 847, "UT"), (850, 865, "AZ"), (870, 884, "NM"), (889, 898, "NV"),
    (900, 961, "CA"), (967, 968, "HI"), (970, 979, "OR"), (980, 994, "WA"),
    (995, 999, "AK"),
)

STATE_BORDERS: dict[str, list[str]] = {
    "ME": ["NH"],
    "NH": ["ME", "VT", "MA"],
    "VT": ["NH", "MA", "NY"],
    "MA": ["NH", "VT", "NY", "CT", "RI"],
    "RI": ["MA", "CT"],
    "CT": ["MA", "RI", "NY"],
    "NY": ["VT", "MA", "CT", "NJ", "PA"],
    "NJ": ["NY", "PA", "DE"],
    "PA": ["NY", "NJ", "DE", "MD", "WV", "OH"],
    "DE": ["PA", "MD", "NJ"],
    "DC": ["VA", "MD"],
    "MD": ["VA", "DC", "WV", "PA", "DE"],
    "VA": ["MD", "DC", "WV", "KY", "TN", "NC"],
    "WV": ["VA", "MD", "PA", "OH", "KY"],
    "NC": ["VA", "TN", "GA", "SC"],
    "SC": ["NC", "GA"],
    "GA": ["FL", "AL", "TN", "NC", "SC"],
    "FL": ["GA", "AL"],
    "AL": ["FL", "GA", "TN", "MS"],
    "TN": ["KY", "VA", "NC", "GA", "AL", "MS", "AR", "MO"],
    "MS": ["TN", "AL", "LA", "AR"],
    "KY": ["IN", "OH", "WV", "VA", "TN", "MO", "IL"],
    "OH": ["PA", "WV", "KY", "IN", "MI"],
    "IN": ["MI", "OH", "KY", "IL"],
    "MI": ["OH", "IN", "WI"],
    "IL": ["WI", "IN", "KY", "MO", "IA"],
    "WI": ["MI", "IL", "IA", "MN"],
    "MN": ["WI", "IA", "SD", "ND"],
    "IA": ["MN", "WI", "IL", "MO", "NE", "SD"],
    "MO": ["IA", "IL", "KY", "TN", "AR", "OK", "KS", "NE"],
    "ND": ["MN", "SD", "MT"],
    "SD": ["ND", "MN", "IA", "NE", "WY", "MT"],
    "NE": ["SD", "IA", "MO", "KS", "CO", "WY"],
    "KS": ["NE", "MO", "OK", "CO"],
    "LA": ["TX", "AR", "MS"],
    "AR": ["MO", "TN", "MS", "LA", "TX", "OK"],
    "OK": ["KS", "MO", "AR", "TX", "NM", "CO"],
    "TX": ["LA", "AR", "OK", "NM"],
    "MT": ["ND", "SD", "WY", "ID"],
    "WY": ["MT", "SD", "NE", "CO", "UT", "ID"],
    "CO": ["WY", "NE", "KS", "OK", "NM", "AZ", "UT"],
    "NM": ["CO", "OK", "TX", "AZ"],
    "AZ": ["CA", "NV", "UT", "CO", "NM"],
    "UT": ["ID", "WY", "CO", "AZ", "NV"],
    "ID": ["MT", "WY", "UT", "NV", "OR", "WA"],
    "NV": ["CA", "OR", "ID", "UT", "AZ"],
    "WA": ["ID", "OR"],
    "OR": ["WA", "ID", "NV", "CA"],
    "CA": ["OR", "NV", "AZ"],
    "AK": [],
    "HI": [],
}


@dataclass(frozen=True, slots=True)
class StateTiers:
    state: list[str]
    bordering: list[str]
    region: list[str]


def state_for_zip(zip_code: str | None) -> str | None:
    if not zip_code:
        return None
    digits = zip_code.strip()[:3]
    if not digits.isdigit():
        return None
    prefix = int(digits)
    for low, high, state in _ZIP_PREFIX_RANGES:
        if low <= prefix <= high:
            return state
    return None


def bordering_states(state: str) -> list[str]:
    return list(STATE_BORDERS.get(state, []))


def extended_region_states(state: str) -> list[str]:
    """Neighbors of neighbors, excluding the state and its direct neighbors."""
    neighbors = bordering_states(state)
    region: list[str] = []
    for neighbor in neighbors:
        for candidate in bordering_states(neighbor):
            if candidate != state and candidate not in neighbors and candidate not in region:
                region.append(candidate)
    return region


def states_by_tier(state: str) -> StateTiers:
    bordering = bordering_states(state)
    return StateTiers(
        state=[state],
        bordering=[state, *bordering],
        region=[state, *bordering, *extended_region_states(state)],
    )
