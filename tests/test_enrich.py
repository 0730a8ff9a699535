"""Unit tests for command-level enrichment of generic DoD entries."""

from decimal import Decimal

import pytest

from agency_search.aggregate import total_spending
from agency_search.enrich import CommandEnricher, apportion_amount, apportion_count, needs_detail
from agency_search.fpds import FpdsOffice, FpdsResult
from agency_search.models import OfficeAggregate


def generic(department="Department of the Navy", spending="1000.00", count=10):
    return OfficeAggregate(
        key=f"department-of-defense|{department}|{department}",
        agency_id="department-of-defense",
        name=department,
        contracting_office=department,
        sub_agency=department,
        parent_agency="Department of Defense",
        has_specific_office=False,
        spending=Decimal(spending),
        contract_count=count,
    )


def civilian():
    return OfficeAggregate(
        key="va|Veterans Health Administration|VISN 6",
        agency_id="va",
        name="VISN 6",
        contracting_office="VISN 6",
        sub_agency="Veterans Health Administration",
        parent_agency="Department of Veterans Affairs",
        has_specific_office=True,
        spending=Decimal("400.00"),
        contract_count=4,
    )


def fpds_office(office_id, name, amount, agency="DEPT OF THE NAVY"):
    return FpdsOffice(
        office_id=office_id,
        office_name=name,
        agency_id="1700",
        agency_name=agency,
        department_id="9700",
        department_name="DEPT OF DEFENSE",
        obligated_amount=Decimal(amount),
        contract_count=1,
    )


class FakeSecondary:
    def __init__(self, offices=(), error=None):
        self.offices = offices
        self.error = error
        self.codes = []

    def __call__(self, code):
        self.codes.append(code)
        if self.error:
            raise self.error
        result = FpdsResult()
        for office in self.offices:
            result.offices[office.key] = office
        return result


class TestStaticExpansion:
    """Tests for the static command table fallback."""

    def test_generic_navy_splits_into_commands(self, config):
        enricher = CommandEnricher(None, config)

        offices = enricher.enrich([generic(), civilian()], ["541511"])

        navy = [office for office in offices if office.source == "command_table"]
        assert [office.command for office in navy] == ["NAVSEA", "NAVAIR", "NAVFAC", "NAVSUP", "NAVWAR"]
        assert navy[0].spending == Decimal("333.33")
        assert sum(office.spending for office in navy) == Decimal("1000.00")
        assert sum(office.contract_count for office in navy) == 10
        assert all(office.has_specific_office for office in navy)
        assert total_spending(offices) == Decimal("1400.00")

    def test_command_limit_is_configurable(self, config):
        config.enrichment.max_commands_per_agency = 2

        offices = CommandEnricher(None, config).enrich([generic("Department of the Army")])

        assert [office.command for office in offices] == ["ACC", "USACE"]
        assert total_spending(offices) == Decimal("1000.00")

    def test_entry_without_table_row_is_kept(self, config):
        entry = generic("Defense Threat Reduction Agency")

        offices = CommandEnricher(None, config).enrich([entry])

        assert offices == [entry]

    def test_keys_stay_unique(self, config):
        offices = CommandEnricher(None, config).enrich(
            [generic("Department of the Navy"), generic("Department of the Army"), civilian()]
        )

        keys = [office.key for office in offices]
        assert len(keys) == len(set(keys))

    def test_no_generic_entries_is_a_no_op(self, config):
        secondary = FakeSecondary()
        offices = [civilian()]

        assert CommandEnricher(secondary, config).enrich(offices, ["541511"]) is offices
        assert secondary.codes == []


class TestSecondaryReplacement:
    """Tests for replacing generic entries with FPDS commands."""

    def test_fpds_commands_replace_generic_entry(self, config):
        secondary = FakeSecondary(
            [
                fpds_office("N40085", "Naval Facilities Engineering Command Mid-Atlantic", "300"),
                fpds_office("N00024", "Naval Sea Systems Command", "100"),
            ]
        )

        offices = CommandEnricher(secondary, config).enrich([generic(), civilian()], ["541511", "541512"])

        fpds = [office for office in offices if office.source == "fpds"]
        assert secondary.codes == ["541511", "541512"]
        assert [office.command for office in fpds] == ["NAVFAC", "NAVSEA"]
        assert [office.spending for office in fpds] == [Decimal("750.00"), Decimal("250.00")]
        assert [office.contract_count for office in fpds] == [8, 2]
        assert total_spending(offices) == Decimal("1400.00")
        assert not any(office.key.startswith("department-of-defense|") for office in offices)

    def test_only_six_digit_codes_are_queried(self, config):
        config.fpds.max_codes = 2
        secondary = FakeSecondary([fpds_office("N00024", "Naval Sea Systems Command", "1")])

        CommandEnricher(secondary, config).enrich([generic()], ["54", "541511", "541512", "541513"])

        assert secondary.codes == ["541511", "541512"]

    def test_no_six_digit_codes_skips_secondary(self, config):
        secondary = FakeSecondary([fpds_office("N00024", "Naval Sea Systems Command", "1")])

        offices = CommandEnricher(secondary, config).enrich([generic()], ["54"])

        assert secondary.codes == []
        assert {office.source for office in offices} == {"command_table"}

    def test_too_few_commands_falls_back_to_table(self, config):
        secondary = FakeSecondary([fpds_office("N00024", "Naval Sea Systems Command", "500")])

        offices = CommandEnricher(secondary, config).enrich(
            [generic("Department of the Navy"), generic("Department of the Army")], ["541511"]
        )

        assert {office.source for office in offices} == {"command_table"}
        assert total_spending(offices) == Decimal("2000.00")

    def test_civilian_fpds_offices_are_ignored(self, config):
        secondary = FakeSecondary(
            [fpds_office("36C246", "Network Contract Office 6", "900", agency="VETERANS AFFAIRS, DEPARTMENT OF")]
        )

        offices = CommandEnricher(secondary, config).enrich([generic()], ["541511"])

        assert {office.source for office in offices} == {"command_table"}

    def test_secondary_failure_degrades_to_table(self, config):
        secondary = FakeSecondary(error=RuntimeError("feed down"))

        offices = CommandEnricher(secondary, config).enrich([generic(), civilian()], ["541511"])

        assert secondary.codes == ["541511"]
        assert "command_table" in {office.source for office in offices}
        assert total_spending(offices) == Decimal("1400.00")

    def test_disabled_secondary_is_not_called(self, config):
        config.fpds.enabled = False
        secondary = FakeSecondary([fpds_office("N00024", "Naval Sea Systems Command", "1")])

        CommandEnricher(secondary, config).enrich([generic()], ["541511"])

        assert secondary.codes == []


class TestApportion:
    """Tests for the conservation helpers."""

    def test_amount_shares_sum_exactly(self):
        shares = apportion_amount(Decimal("100"), [Decimal(1)] * 3)

        assert shares == [Decimal("33.33"), Decimal("33.33"), Decimal("33.34")]
        assert sum(shares) == Decimal("100")

    def test_zero_weights_split_evenly(self):
        assert apportion_count(5, [Decimal(0), Decimal(0)]) == [3, 2]
        assert apportion_amount(Decimal("10"), [Decimal(0), Decimal(0)]) == [Decimal("5.00"), Decimal("5.00")]

    @pytest.mark.parametrize("total", [0, 1, 7, 10, 101])
    def test_counts_sum_exactly(self, total):
        counts = apportion_count(total, [Decimal("0.30"), Decimal("0.22"), Decimal("0.16")])

        assert sum(counts) == total

    def test_needs_detail(self):
        assert needs_detail(generic())
        assert not needs_detail(civilian())
