"""Unit tests for the progressive widening ladder."""

from datetime import date

import httpx
import pytest

from agency_search.errors import UpstreamUnavailableError
from agency_search.expansion import ExpansionController
from agency_search.filters import ALL_SMALL_BUSINESS_CODES, SMALL_BUSINESS_CODES, build_filter
from agency_search.models import AwardRecord, Certification, SearchCriteria
from agency_search.usaspending import FetchResult


def office_records(count, prefix):
    return [
        AwardRecord.from_api(
            {
                "Awarding Agency": "Department of Energy",
                "Awarding Sub Agency": "Department of Energy",
                "Awarding Office": f"{prefix} office {index}",
                "Award Amount": 100 + index,
            }
        )
        for index in range(count)
    ]


class FakeFetcher:
    """Answers each query with as many distinct offices as ``respond(query)`` says."""

    def __init__(self, respond):
        self.respond = respond
        self.calls = []

    def __call__(self, query, max_pages):
        self.calls.append((query, max_pages))
        answer = self.respond(query)
        if isinstance(answer, Exception):
            return FetchResult(error=answer)
        return FetchResult(records=office_records(answer, str(len(self.calls))), pages=1)


def women_owned(naics="541511"):
    return SearchCriteria(certification=Certification.WOMEN_OWNED, naics_code=naics, zip_code="20191")


def query_for(criteria, state="VA"):
    return build_filter(criteria, [criteria.naics_code] if criteria.naics_code else [], state, date(2025, 3, 1))


class TestExpansionController:
    """Tests for ExpansionController.run."""

    def test_initial_search_satisfies_target(self, config):
        fetch = FakeFetcher(lambda query: 25)
        criteria = women_owned()

        outcome = ExpansionController(fetch, config.search).run(criteria, query_for(criteria), "VA")

        assert len(fetch.calls) == 1
        assert fetch.calls[0][1] == 50
        assert outcome.snapshot.step == "initial"
        assert outcome.snapshot.location_tier == 1
        assert outcome.was_auto_adjusted is False
        assert outcome.fallback_message is None

    def test_widens_geography_until_target(self, config):
        def respond(query):
            if query.states == ("VA",):
                return 2 if "WOSB" in query.set_aside_codes else 5
            if not query.states:
                return 25
            return 10 if len(query.states) == 7 else 15

        fetch = FakeFetcher(respond)
        criteria = women_owned()

        outcome = ExpansionController(fetch, config.search).run(criteria, query_for(criteria), "VA")

        assert [step.step for step in outcome.steps] == [
            "same_state_broaden",
            "bordering",
            "region",
            "nationwide",
        ]
        assert outcome.snapshot.location_tier == 4
        assert outcome.snapshot.office_count == 25
        assert outcome.broadened_set_aside is True
        assert outcome.snapshot.query.set_aside_codes == SMALL_BUSINESS_CODES
        assert outcome.messages[0] == "Showing Small Business opportunities in VA (5 agencies found)."
        assert outcome.messages[1] == "Expanded to 7 neighboring states (10 agencies found)."
        assert outcome.fallback_message == "Showing nationwide results (25 agencies found)."
        assert [budget for _, budget in fetch.calls[1:]] == [25, 25, 35, 50]

    def test_empty_rung_is_not_adopted(self, config):
        def respond(query):
            if query.states == ("VA",):
                return 3
            if len(query.states) == 7:
                return 0
            return 21

        criteria = SearchCriteria(naics_code="541511", zip_code="20191")
        fetch = FakeFetcher(respond)

        outcome = ExpansionController(fetch, config.search).run(criteria, query_for(criteria), "VA")

        assert [(step.step, step.adopted) for step in outcome.steps] == [
            ("bordering", False),
            ("region", True),
        ]
        assert outcome.snapshot.location_tier == 3
        assert len(outcome.messages) == 1

    def test_broadening_that_loses_offices_is_rejected(self, config):
        def respond(query):
            if query.states == ("VA",):
                return 4 if "WOSB" in query.set_aside_codes else 2
            return 30

        fetch = FakeFetcher(respond)
        criteria = women_owned()

        outcome = ExpansionController(fetch, config.search).run(criteria, query_for(criteria), "VA")

        assert outcome.steps[0].step == "same_state_broaden"
        assert outcome.steps[0].adopted is False
        assert outcome.broadened_set_aside is False
        assert outcome.snapshot.query.set_aside_codes == ("WOSB", "EDWOSB")

    def test_small_business_skips_same_state_broaden(self, config):
        fetch = FakeFetcher(lambda query: 3 if query.states == ("VA",) else 30)
        criteria = SearchCriteria(
            certification=Certification.SMALL_BUSINESS, naics_code="541511", zip_code="20191"
        )

        outcome = ExpansionController(fetch, config.search).run(criteria, query_for(criteria), "VA")

        assert outcome.steps[0].step == "bordering"

    def test_set_aside_relaxation_after_nationwide(self, config):
        def respond(query):
            if not query.set_aside_codes:
                return 30
            if not query.states:
                return 12
            return 2 if "WOSB" in query.set_aside_codes else 5

        fetch = FakeFetcher(respond)
        criteria = women_owned()

        outcome = ExpansionController(fetch, config.search).run(criteria, query_for(criteria), "VA")

        steps = [step.step for step in outcome.steps]
        assert "all_small_business" not in steps
        assert steps[-1] == "no_set_aside"
        assert outcome.snapshot.location_tier == 4
        assert outcome.snapshot.query.set_aside_codes == ()
        assert outcome.fallback_message == "Showing all contracts in this NAICS (30 agencies found)."

    def test_without_state_goes_straight_to_set_asides(self, config):
        def respond(query):
            if query.set_aside_codes == ALL_SMALL_BUSINESS_CODES:
                return 8
            if not query.set_aside_codes:
                return 40
            return 3

        fetch = FakeFetcher(respond)
        criteria = SearchCriteria(certification=Certification.HUBZONE, naics_code="541511")

        outcome = ExpansionController(fetch, config.search).run(criteria, query_for(criteria, None), None)

        assert [step.step for step in outcome.steps] == ["all_small_business", "no_set_aside"]
        assert outcome.snapshot.location_tier == 1
        assert outcome.messages[0] == "Showing all small business certification types (8 agencies found)."

    def test_no_certification_stops_after_geography(self, config):
        fetch = FakeFetcher(lambda query: 4)
        criteria = SearchCriteria(naics_code="541511", zip_code="20191")

        outcome = ExpansionController(fetch, config.search).run(criteria, query_for(criteria), "VA")

        assert outcome.snapshot.step == "nationwide"
        assert len(fetch.calls) == 4

    def test_unreachable_upstream_raises(self, config):
        request = httpx.Request("POST", "https://api.example.test/search/")
        fetch = FakeFetcher(lambda query: httpx.ConnectError("refused", request=request))
        criteria = women_owned()

        with pytest.raises(UpstreamUnavailableError):
            ExpansionController(fetch, config.search).run(criteria, query_for(criteria), "VA")

    def test_office_count_never_shrinks_across_adopted_steps(self, config):
        counts = iter([1, 6, 9, 14, 19, 19, 19])
        fetch = FakeFetcher(lambda query: next(counts))
        criteria = SearchCriteria(
            certification=Certification.EIGHT_A, naics_code="541511", zip_code="20191"
        )

        outcome = ExpansionController(fetch, config.search).run(criteria, query_for(criteria), "VA")

        adopted = [step.office_count for step in outcome.steps if step.adopted]
        assert adopted == sorted(adopted)
