from __future__ import annotations

from decimal import ROUND_HALF_EVEN, Decimal
from typing import Callable, Iterable, Mapping, Sequence

from loguru import logger

from .aggregate import rank_offices, total_spending
from .commands import COMMAND_TABLE, StaticCommand, commands_for, is_dod_entity
from .config import AppConfig
from .fpds import FpdsResult, map_offices
from .models import OfficeAggregate

SecondarySource = Callable[[str], FpdsResult]

CENT = Decimal("0.01")


class CommandEnricher:
    def __init__(
        self,
        secondary: SecondarySource | None,
        config: AppConfig,
        command_table: Mapping[str, Sequence[StaticCommand]] | None = None,
    ) -> None:
        self.secondary = secondary
        self.config = config
        self.command_table = command_table if command_table is not None else COMMAND_TABLE

    def enrich(
        self, offices: list[OfficeAggregate], naics_codes: Sequence[str] = ()
    ) -> list[OfficeAggregate]:
        generic = [office for office in offices if needs_detail(office)]
        if not generic:
            return offices
        logger.info(f"Found {len(generic)} DoD entries without command-level detail")

        commands = self._secondary_commands(naics_codes)
        if commands and len(commands) >= len(generic):
            enriched = self._replace_with_commands(offices, generic, commands)
        else:
            if commands:
                logger.info(
                    f"FPDS returned {len(commands)} DoD commands, need {len(generic)}; "
                    "expanding from the static command table"
                )
            enriched = self._expand_from_table(offices, generic)

        logger.info(
            f"Enrichment: {len(offices)} -> {len(enriched)} offices, "
            f"total ${total_spending(enriched):,.2f}"
        )
        return enriched

    def _secondary_commands(self, naics_codes: Sequence[str]) -> list[OfficeAggregate]:
        if self.secondary is None or not self.config.fpds.enabled:
            return []
        six_digit = [code for code in naics_codes if len(code) == 6][: self.config.fpds.max_codes]
        if not six_digit:
            logger.info("No 6-digit NAICS codes available for FPDS; skipping")
            return []

        logger.info(f"Querying FPDS with codes: {', '.join(six_digit)}")
        combined = FpdsResult()
        try:
            for code in six_digit:
                combined.merge(self.secondary(code))
        except Exception as exc:
            logger.warning(f"FPDS lookup failed, falling back to static commands: {exc}")
            return []

        if not combined.offices:
            logger.info("FPDS returned no offices for this NAICS code")
            return []
        mapped = map_offices(combined)
        return [office for office in mapped if is_dod_entity(office.parent_agency, office.sub_agency)]

    def _replace_with_commands(
        self,
        offices: list[OfficeAggregate],
        generic: list[OfficeAggregate],
        commands: list[OfficeAggregate],
    ) -> list[OfficeAggregate]:
        logger.info(f"Replacing {len(generic)} generic DoD entries with {len(commands)} FPDS commands")
        spend = total_spending(generic)
        count = sum(office.contract_count for office in generic)
        weights = [office.spending for office in commands]
        for office, amount, contracts in zip(
            commands, apportion_amount(spend, weights), apportion_count(count, weights)
        ):
            office.spending = amount
            office.contract_count = contracts

        generic_keys = {office.key for office in generic}
        kept = [office for office in offices if office.key not in generic_keys]
        return rank_offices([*kept, *commands])

    def _expand_from_table(
        self, offices: list[OfficeAggregate], generic: list[OfficeAggregate]
    ) -> list[OfficeAggregate]:
        generic_keys = {office.key for office in generic}
        result: list[OfficeAggregate] = []
        for office in offices:
            if office.key not in generic_keys:
                result.append(office)
                continue
            expanded = self.expand_generic(office)
            if expanded:
                logger.info(f"Expanded {office.sub_agency!r} into {len(expanded)} commands")
                result.extend(expanded)
            else:
                result.append(office)
        return rank_offices(result)

    def expand_generic(self, office: OfficeAggregate) -> list[OfficeAggregate]:
        limit = self.config.enrichment.max_commands_per_agency
        commands = commands_for(office.sub_agency, self.command_table) or commands_for(
            office.name, self.command_table
        )
        commands = commands[:limit]
        if not commands:
            return []

        weights = [command.weight for command in commands]
        amounts = apportion_amount(office.spending, weights)
        counts = apportion_count(office.contract_count, weights)
        return [
            OfficeAggregate(
                key=f"{office.key}|{command.abbreviation}",
                agency_id=office.agency_id,
                name=command.name,
                contracting_office=command.name,
                sub_agency=office.sub_agency,
                parent_agency=office.parent_agency,
                has_specific_office=True,
                agency_code=office.agency_code,
                sub_agency_code=office.sub_agency_code,
                location=office.location,
                spending=amount,
                contract_count=contracts,
                command=command.abbreviation,
                source="command_table",
            )
            for command, amount, contracts in zip(commands, amounts, counts)
        ]


def needs_detail(office: OfficeAggregate) -> bool:
    if office.has_specific_office:
        return False
    return is_dod_entity(office.parent_agency, office.sub_agency, office.name)


def _normalized_weights(weights: Iterable[Decimal]) -> list[Decimal]:
    values = [max(Decimal(weight), Decimal("0")) for weight in weights]
    if sum(values, Decimal("0")) <= 0:
        return [Decimal("1")] * len(values)
    return values


def apportion_amount(total: Decimal, weights: Sequence[Decimal]) -> list[Decimal]:
    # The last share takes the rounding remainder.
    if not weights:
        return []
    values = _normalized_weights(weights)
    weight_sum = sum(values, Decimal("0"))
    shares: list[Decimal] = []
    allocated = Decimal("0")
    for weight in values[:-1]:
        share = (total * weight / weight_sum).quantize(CENT, rounding=ROUND_HALF_EVEN)
        shares.append(share)
        allocated += share
    shares.append(total - allocated)
    return shares


def apportion_count(total: int, weights: Sequence[Decimal]) -> list[int]:
    if not weights:
        return []
    values = _normalized_weights(weights)
    weight_sum = sum(values, Decimal("0"))
    exact = [Decimal(total) * weight / weight_sum for weight in values]
    counts = [int(value) for value in exact]
    leftover = total - sum(counts)
    order = sorted(range(len(exact)), key=lambda i: (-(exact[i] - counts[i]), i))
    for index in order[:leftover]:
        counts[index] += 1
    return counts
