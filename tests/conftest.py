"""Shared fixtures: a delay-free config, award rows and mocked HTTP clients."""

import json

import httpx
import pytest

from agency_search.config import AppConfig


@pytest.fixture
def config():
    """Default configuration with all sleeps disabled."""
    cfg = AppConfig()
    cfg.search.page_delay_seconds = 0
    cfg.fpds.page_delay_seconds = 0
    return cfg


@pytest.fixture
def award_row():
    """Factory for USAspending award rows."""

    def make(
        agency="Department of Veterans Affairs",
        sub_agency="Veterans Health Administration",
        office=None,
        amount=1000,
        state="VA",
        award_id=None,
        slug=None,
    ):
        return {
            "Award ID": award_id or f"AWD-{agency[:3]}-{office or sub_agency}-{amount}",
            "Recipient Name": "ACME FEDERAL LLC",
            "Awarding Agency": agency,
            "Awarding Sub Agency": sub_agency,
            "Awarding Office": office,
            "Awarding Agency Code": "036",
            "Awarding Sub Agency Code": "3600",
            "agency_slug": slug,
            "NAICS Code": "541511",
            "Place of Performance State Code": state,
            "Award Amount": amount,
            "Set-Aside Type": "WOSB",
            "Number of Offers Received": 3,
        }

    return make


@pytest.fixture
def office_rows(award_row):
    """Factory for ``count`` rows, each from a different contracting office."""

    def make(count, prefix="Office", **kwargs):
        return [award_row(office=f"{prefix} {index}", amount=1000 + index, **kwargs) for index in range(count)]

    return make


@pytest.fixture
def mock_client():
    """Build an ``httpx.Client`` whose requests are answered by ``handler``."""
    clients = []

    def make(handler):
        client = httpx.Client(transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield make
    for client in clients:
        client.close()


def request_payload(request: httpx.Request) -> dict:
    return json.loads(request.content.decode())


def fpds_entry(office_id, office_name, amount, agency="DEPT OF THE NAVY", agency_id="1700"):
    return f"""
  <entry>
    <title>{office_id} award</title>
    <content type="application/xml">
      <ns1:award xmlns:ns1="https://www.fpds.gov/FPDS">
        <ns1:relevantContractDates><ns1:signedDate>2024-03-01 00:00:00</ns1:signedDate></ns1:relevantContractDates>
        <ns1:dollarValues><ns1:obligatedAmount>{amount}</ns1:obligatedAmount></ns1:dollarValues>
        <ns1:purchaserInformation>
          <ns1:contractingOfficeAgencyID name="{agency}" departmentID="9700" departmentName="DEPT OF DEFENSE">{agency_id}</ns1:contractingOfficeAgencyID>
          <ns1:contractingOfficeID name="{office_name}">{office_id}</ns1:contractingOfficeID>
        </ns1:purchaserInformation>
        <ns1:vendor><ns1:vendorHeader><ns1:vendorName>ACME &amp; SONS</ns1:vendorName></ns1:vendorHeader></ns1:vendor>
        <ns1:productOrServiceInformation><ns1:principalNAICSCode>541511</ns1:principalNAICSCode></ns1:productOrServiceInformation>
        <ns1:placeOfPerformance><ns1:principalPlaceOfPerformance><ns1:stateCode>VA</ns1:stateCode></ns1:principalPlaceOfPerformance></ns1:placeOfPerformance>
      </ns1:award>
    </content>
  </entry>"""


def fpds_feed(entries, next_href=None):
    link = f'<link rel="next" href="{next_href}"/>' if next_href else ""
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<feed xmlns="http://www.w3.org/2005/Atom">\n'
        f"  <title>FPDS</title>{link}{''.join(entries)}\n</feed>"
    )
