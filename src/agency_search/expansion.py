from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Callable

from loguru import logger

from .aggregate import count_distinct_offices
from .config import SearchConfig
from .errors import UpstreamUnavailableError
from .filters import ALL_SMALL_BUSINESS_CODES, SMALL_BUSINESS_CODES, QueryFilter
from .geography import states_by_tier
from .models import AwardRecord, Certification, SearchCriteria
from .usaspending import FetchResult, page_budget

Fetcher = Callable[[QueryFilter, int], FetchResult]

MINORITY_CERTIFICATIONS = frozenset(
    {Certification.WOMEN_OWNED, Certification.HUBZONE, Certification.EIGHT_A}
)


@dataclass(frozen=True, slots=True)
class SearchSnapshot:
    query: QueryFilter
    records: tuple[AwardRecord, ...]
    office_count: int
    location_tier: int
    step: str


@dataclass(frozen=True, slots=True)
class StepReport:
    step: str
    record_count: int
    office_count: int
    adopted: bool


@dataclass(slots=True)
class ExpansionOutcome:
    snapshot: SearchSnapshot
    steps: list[StepReport] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)
    broadened_set_aside: bool = False

    @property
    def was_auto_adjusted(self) -> bool:
        return bool(self.messages)

    @property
    def fallback_message(self) -> str | None:
        return self.messages[-1] if self.messages else None


class ExpansionController:
    def __init__(self, fetch: Fetcher, config: SearchConfig, url: str = "award search") -> None:
        self.fetch = fetch
        self.config = config
        self.url = url

    def run(
        self,
        criteria: SearchCriteria,
        query: QueryFilter,
        state: str | None,
    ) -> ExpansionOutcome:
        initial = self._initial(query, criteria.zip_code)
        outcome = ExpansionOutcome(snapshot=initial)
        logger.info(
            f"Initial search: {len(initial.records)} awards, {initial.office_count} offices"
        )

        if not self._satisfied(outcome) and state:
            logger.info(
                f"Only {outcome.snapshot.office_count} offices "
                f"(target {self.config.min_offices}); widening from {state}"
            )
            self._same_state_broaden(outcome, criteria, state)
            self._geography(outcome, state)

        if not self._satisfied(outcome) and criteria.has_certification and criteria.has_naics:
            self._all_small_business(outcome, criteria, state)
            self._no_set_aside(outcome, state)

        logger.info(
            f"Expansion finished at {outcome.snapshot.step}: "
            f"{outcome.snapshot.office_count} offices, tier {outcome.snapshot.location_tier}"
        )
        return outcome

    def _initial(self, query: QueryFilter, zip_code: str | None) -> SearchSnapshot:
        result = self.fetch(query, page_budget(query, self.config, zip_code))
        if result.unreachable:
            raise UpstreamUnavailableError(self.url, result.error)
        return _snapshot(query, result, location_tier=1, step="initial")

    def _same_state_broaden(
        self, outcome: ExpansionOutcome, criteria: SearchCriteria, state: str
    ) -> None:
        current = outcome.snapshot
        if self._satisfied(outcome):
            return
        if criteria.certification is Certification.SMALL_BUSINESS or not current.query.set_aside_codes:
            return

        query = replace(current.query, set_aside_codes=SMALL_BUSINESS_CODES, states=(state,))
        candidate = self._attempt(
            query, self.config.same_state_broaden_pages, current.location_tier, "same_state_broaden"
        )
        adopt = bool(candidate.records) and candidate.office_count >= current.office_count
        self._record(outcome, candidate, adopt)
        if adopt:
            outcome.broadened_set_aside = True
            outcome.messages.append(
                f"Showing Small Business opportunities in {state} "
                f"({candidate.office_count} agencies found)."
            )

    def _geography(self, outcome: ExpansionOutcome, state: str) -> None:
        tiers = states_by_tier(state)
        rungs = (
            ("bordering", 2, tuple(tiers.bordering), self.config.bordering_pages),
            ("region", 3, tuple(tiers.region), self.config.region_pages),
            ("nationwide", 4, (), self.config.nationwide_pages),
        )
        for step, tier, states, budget in rungs:
            if self._satisfied(outcome):
                return
            query = replace(outcome.snapshot.query, states=states)
            candidate = self._attempt(query, budget, tier, step)
            adopt = bool(candidate.records)
            self._record(outcome, candidate, adopt)
            if adopt:
                outcome.messages.append(_geography_message(step, len(states), candidate.office_count))

    def _all_small_business(
        self, outcome: ExpansionOutcome, criteria: SearchCriteria, state: str | None
    ) -> None:
        if self._satisfied(outcome) or outcome.broadened_set_aside:
            return
        if criteria.certification not in MINORITY_CERTIFICATIONS:
            return
        current = outcome.snapshot
        query = replace(current.query, set_aside_codes=ALL_SMALL_BUSINESS_CODES, states=())
        candidate = self._attempt(
            query,
            self.config.all_small_business_pages,
            _nationwide_tier(outcome, state),
            "all_small_business",
        )
        adopt = bool(candidate.records)
        self._record(outcome, candidate, adopt)
        if adopt:
            outcome.broadened_set_aside = True
            outcome.messages.append(
                "Showing all small business certification types "
                f"({candidate.office_count} agencies found)."
            )

    def _no_set_aside(self, outcome: ExpansionOutcome, state: str | None) -> None:
        if self._satisfied(outcome):
            return
        query = replace(outcome.snapshot.query, set_aside_codes=(), states=())
        candidate = self._attempt(
            query, self.config.no_set_aside_pages, _nationwide_tier(outcome, state), "no_set_aside"
        )
        adopt = bool(candidate.records)
        self._record(outcome, candidate, adopt)
        if adopt:
            outcome.messages.append(
                f"Showing all contracts in this NAICS ({candidate.office_count} agencies found)."
            )

    def _attempt(self, query: QueryFilter, budget: int, tier: int, step: str) -> SearchSnapshot:
        logger.info(f"Trying {step} (tier {tier}, up to {budget} pages)")
        return _snapshot(query, self.fetch(query, budget), location_tier=tier, step=step)

    def _record(self, outcome: ExpansionOutcome, candidate: SearchSnapshot, adopt: bool) -> None:
        outcome.steps.append(
            StepReport(
                step=candidate.step,
                record_count=len(candidate.records),
                office_count=candidate.office_count,
                adopted=adopt,
            )
        )
        if adopt:
            outcome.snapshot = candidate
            logger.info(
                f"Adopted {candidate.step}: {len(candidate.records)} awards, "
                f"{candidate.office_count} offices"
            )

    def _satisfied(self, outcome: ExpansionOutcome) -> bool:
        return outcome.snapshot.office_count >= self.config.min_offices


def _snapshot(query: QueryFilter, result: FetchResult, location_tier: int, step: str) -> SearchSnapshot:
    records = tuple(result.records)
    return SearchSnapshot(
        query=query,
        records=records,
        office_count=count_distinct_offices(records),
        location_tier=location_tier,
        step=step,
    )


def _geography_message(step: str, state_count: int, office_count: int) -> str:
    if step == "bordering":
        return f"Expanded to {state_count} neighboring states ({office_count} agencies found)."
    if step == "region":
        return f"Expanded to {state_count}-state region ({office_count} agencies found)."
    return f"Showing nationwide results ({office_count} agencies found)."


def _nationwide_tier(outcome: ExpansionOutcome, state: str | None) -> int:
    # Without a home state the search was nationwide from the start.
    return 4 if state else outcome.snapshot.location_tier
