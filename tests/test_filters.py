"""Unit tests for geography lookups and award search filters."""

from datetime import date

import pytest

from agency_search.filters import build_filter, fiscal_window
from agency_search.geography import (
    bordering_states,
    extended_region_states,
    state_for_zip,
    states_by_tier,
)
from agency_search.models import Certification, SearchCriteria, VeteranStatus


class TestGeography:
    """Tests for ZIP and state-tier lookups."""

    @pytest.mark.parametrize(
        "zip_code, state",
        [
            ("20191", "VA"),
            ("20001", "DC"),
            ("20500", "DC"),
            ("22030", "VA"),
            ("10001", "NY"),
            ("90210", "CA"),
            ("99501", "AK"),
        ],
    )
    def test_state_for_zip(self, zip_code, state):
        assert state_for_zip(zip_code) == state

    @pytest.mark.parametrize("zip_code", [None, "", "abcde", "00501"])
    def test_unknown_zip_has_no_state(self, zip_code):
        assert state_for_zip(zip_code) is None

    def test_tiers_widen_monotonically(self):
        tiers = states_by_tier("VA")

        assert tiers.state == ["VA"]
        assert tiers.bordering[0] == "VA"
        assert set(bordering_states("VA")) <= set(tiers.bordering)
        assert set(tiers.bordering) < set(tiers.region)
        assert len(tiers.region) == len(set(tiers.region))

    def test_extended_region_skips_state_and_neighbors(self):
        region = extended_region_states("VA")

        assert "VA" not in region
        assert not set(region) & set(bordering_states("VA"))
        assert "PA" in region

    def test_island_state_has_no_neighbors(self):
        assert states_by_tier("HI").region == ["HI"]


class TestFiscalWindow:
    """Tests for the trailing fiscal-year window."""

    def test_after_fiscal_year_rollover(self):
        assert fiscal_window(date(2026, 10, 19)) == ("2023-10-01", "2026-09-30")

    def test_before_fiscal_year_rollover(self):
        assert fiscal_window(date(2025, 3, 1)) == ("2021-10-01", "2024-09-30")


class TestBuildFilter:
    """Tests for translating criteria into a query filter."""

    def test_certification_and_veteran_codes_combine(self):
        criteria = SearchCriteria(
            certification=Certification.WOMEN_OWNED,
            veteran_status=VeteranStatus.SERVICE_DISABLED,
        )

        query = build_filter(criteria, today=date(2025, 3, 1))

        assert query.set_aside_codes == ("WOSB", "EDWOSB", "SDVOSB", "SDVOSBC")

    def test_psc_used_only_without_naics(self):
        without_naics = build_filter(SearchCriteria(psc_code=" r425 "), today=date(2025, 3, 1))
        with_naics = build_filter(
            SearchCriteria(naics_code="541511", psc_code="R425"),
            ["541511"],
            today=date(2025, 3, 1),
        )

        assert without_naics.psc_codes == ("R425",)
        assert with_naics.psc_codes == ()

    def test_to_api_renders_all_filters(self):
        query = build_filter(
            SearchCriteria(certification=Certification.HUBZONE, naics_code="541511"),
            ["541511"],
            state="VA",
            today=date(2025, 3, 1),
        )

        api = query.to_api()

        assert api["award_type_codes"] == ["A", "B", "C", "D"]
        assert api["time_period"] == [{"start_date": "2021-10-01", "end_date": "2024-09-30"}]
        assert api["naics_codes"] == ["541511"]
        assert api["set_aside_type_codes"] == ["HZBZ", "HUBZ"]
        assert api["place_of_performance_locations"] == [{"country": "USA", "state": "VA"}]
        assert query.active_filter_count == 3

    def test_empty_criteria_has_no_optional_filters(self):
        api = build_filter(SearchCriteria(), today=date(2025, 3, 1)).to_api()

        assert set(api) == {"award_type_codes", "time_period"}
