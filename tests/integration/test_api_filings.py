"""
Integration Tests for Statutory Filing Endpoints
"""

from decimal import Decimal
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from backend.models.company import Company
from tests.factories import make_contract, make_employee


def _url(company_id, suffix: str = "") -> str:
    return f"/api/v1/companies/{company_id}/filings{suffix}"


@pytest_asyncio.fixture
async def draft_run_id(
    client: AsyncClient,
    db_session: AsyncSession,
    test_company: Company,
    auth_headers: dict[str, str],
) -> str:
    """Draft run for June 2025 over one employee on 1,000,000 TZS."""
    emp = make_employee(test_company.id)
    db_session.add(emp)
    await db_session.flush()
    db_session.add(make_contract(test_company.id, emp.id, basic_salary=Decimal("1000000.00")))
    await db_session.commit()

    response = await client.post(
        f"/api/v1/companies/{test_company.id}/payroll/draft",
        json={"period_year": 2025, "period_month": 6},
        headers=auth_headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]["payroll_run_id"]


@pytest.mark.asyncio
async def test_generate_filings(
    client: AsyncClient,
    test_company: Company,
    draft_run_id: str,
    auth_headers: dict[str, str],
) -> None:
    response = await client.post(
        _url(test_company.id, "/generate"),
        json={"payroll_run_id": draft_run_id},
        headers=auth_headers,
    )

    assert response.status_code == 201, response.text
    filings = {f["filing_type"]: f for f in response.json()["data"]}
    assert set(filings) == {"SDL", "PAYE"}
    assert filings["SDL"]["due_date"] == "2025-07-07"
    assert filings["SDL"]["payroll_run_id"] == draft_run_id
    assert Decimal(filings["SDL"]["amount_due"]) == Decimal("0")
    assert filings["PAYE"]["metadata"]["source"] == "auto_generated"


@pytest.mark.asyncio
async def test_generate_defaults_to_latest_run(
    client: AsyncClient,
    test_company: Company,
    draft_run_id: str,
    auth_headers: dict[str, str],
) -> None:
    response = await client.post(_url(test_company.id, "/generate"), headers=auth_headers)

    assert response.status_code == 201
    assert all(f["payroll_run_id"] == draft_run_id for f in response.json()["data"])


@pytest.mark.asyncio
async def test_generate_twice_conflicts(
    client: AsyncClient,
    test_company: Company,
    draft_run_id: str,
    auth_headers: dict[str, str],
) -> None:
    first = await client.post(_url(test_company.id, "/generate"), json={}, headers=auth_headers)
    assert first.status_code == 201

    second = await client.post(_url(test_company.id, "/generate"), json={}, headers=auth_headers)
    assert second.status_code == 409
    assert "/amend" in second.json()["detail"]


@pytest.mark.asyncio
async def test_generate_with_key_replays(
    client: AsyncClient,
    test_company: Company,
    draft_run_id: str,
    auth_headers: dict[str, str],
) -> None:
    headers = {**auth_headers, "Idempotency-Key": "filings-june"}
    first = await client.post(_url(test_company.id, "/generate"), json={}, headers=headers)
    second = await client.post(_url(test_company.id, "/generate"), json={}, headers=headers)

    assert first.status_code == second.status_code == 201
    assert second.content == first.content


@pytest.mark.asyncio
async def test_generate_without_runs(
    client: AsyncClient,
    test_company: Company,
    auth_headers: dict[str, str],
) -> None:
    response = await client.post(_url(test_company.id, "/generate"), json={}, headers=auth_headers)

    assert response.status_code == 404
    assert response.json()["detail"] == "No payroll run found for filing generation"


@pytest.mark.asyncio
async def test_list_filings(
    client: AsyncClient,
    test_company: Company,
    draft_run_id: str,
    auth_headers: dict[str, str],
    viewer_headers: dict[str, str],
) -> None:
    await client.post(_url(test_company.id, "/generate"), json={}, headers=auth_headers)

    response = await client.get(_url(test_company.id), headers=viewer_headers)

    assert response.status_code == 200
    assert [f["filing_type"] for f in response.json()["data"]] == ["PAYE", "SDL"]


@pytest.mark.asyncio
async def test_viewer_cannot_generate(
    client: AsyncClient,
    test_company: Company,
    viewer_headers: dict[str, str],
) -> None:
    response = await client.post(_url(test_company.id, "/generate"), json={}, headers=viewer_headers)
    assert response.status_code == 403


@pytest_asyncio.fixture
async def paye_filing_id(
    client: AsyncClient,
    test_company: Company,
    draft_run_id: str,
    auth_headers: dict[str, str],
) -> str:
    response = await client.post(_url(test_company.id, "/generate"), json={}, headers=auth_headers)
    assert response.status_code == 201, response.text
    return next(f["id"] for f in response.json()["data"] if f["filing_type"] == "PAYE")


AMEND_BODY = {"amount_due": "12500.00", "reason": "Late overtime claim"}


@pytest.mark.asyncio
async def test_amend_filing(
    client: AsyncClient,
    test_company: Company,
    paye_filing_id: str,
    auth_headers: dict[str, str],
) -> None:
    response = await client.post(
        _url(test_company.id, f"/{paye_filing_id}/amend"),
        json=AMEND_BODY,
        headers=auth_headers,
    )

    assert response.status_code == 201, response.text
    amended = response.json()["data"]
    assert amended["status"] == "ready"
    assert amended["original_filing_id"] == paye_filing_id
    assert amended["amended_reason"] == "Late overtime claim"
    assert Decimal(amended["amount_due"]) == Decimal("12500.00")

    listing = await client.get(_url(test_company.id), headers=auth_headers)
    statuses = {f["id"]: f["status"] for f in listing.json()["data"]}
    assert statuses[paye_filing_id] == "amended"
    assert statuses[amended["id"]] == "ready"


@pytest.mark.asyncio
async def test_amend_with_key_replays(
    client: AsyncClient,
    test_company: Company,
    paye_filing_id: str,
    auth_headers: dict[str, str],
) -> None:
    headers = {**auth_headers, "Idempotency-Key": "amend-paye-june"}
    url = _url(test_company.id, f"/{paye_filing_id}/amend")

    first = await client.post(url, json=AMEND_BODY, headers=headers)
    second = await client.post(url, json=AMEND_BODY, headers=headers)

    assert first.status_code == second.status_code == 201
    assert second.content == first.content

    listing = await client.get(_url(test_company.id), headers=auth_headers)
    assert len(listing.json()["data"]) == 3


@pytest.mark.asyncio
async def test_amend_key_reused_with_other_body_conflicts(
    client: AsyncClient,
    test_company: Company,
    paye_filing_id: str,
    auth_headers: dict[str, str],
) -> None:
    headers = {**auth_headers, "Idempotency-Key": "amend-paye-june"}
    url = _url(test_company.id, f"/{paye_filing_id}/amend")
    await client.post(url, json=AMEND_BODY, headers=headers)

    response = await client.post(url, json={**AMEND_BODY, "amount_due": "13000.00"}, headers=headers)

    assert response.status_code == 409
    assert "payload differs" in response.json()["detail"]


@pytest.mark.asyncio
async def test_amend_superseded_filing_rejected(
    client: AsyncClient,
    test_company: Company,
    paye_filing_id: str,
    auth_headers: dict[str, str],
) -> None:
    url = _url(test_company.id, f"/{paye_filing_id}/amend")
    await client.post(url, json=AMEND_BODY, headers=auth_headers)

    response = await client.post(url, json=AMEND_BODY, headers=auth_headers)

    assert response.status_code == 422
    assert "already been amended" in response.json()["detail"]


@pytest.mark.asyncio
async def test_amend_validation(
    client: AsyncClient,
    test_company: Company,
    paye_filing_id: str,
    auth_headers: dict[str, str],
) -> None:
    url = _url(test_company.id, f"/{paye_filing_id}/amend")

    negative = await client.post(url, json={"amount_due": "-1", "reason": "x"}, headers=auth_headers)
    blank = await client.post(url, json={"amount_due": "1", "reason": "   "}, headers=auth_headers)

    assert negative.status_code == 422
    assert blank.status_code == 422
    assert blank.json()["detail"] == "reason is required for amendment"


@pytest.mark.asyncio
async def test_amend_unknown_filing(
    client: AsyncClient,
    test_company: Company,
    auth_headers: dict[str, str],
) -> None:
    response = await client.post(
        _url(test_company.id, f"/{uuid4()}/amend"),
        json=AMEND_BODY,
        headers=auth_headers,
    )

    assert response.status_code == 404
    assert response.json()["detail"] == "Filing not found"


@pytest.mark.asyncio
async def test_filing_submitted_then_paid(
    client: AsyncClient,
    test_company: Company,
    paye_filing_id: str,
    auth_headers: dict[str, str],
) -> None:
    url = _url(test_company.id, f"/{paye_filing_id}/status")

    submitted = await client.patch(
        url,
        json={"target_status": "submitted", "submission_reference": "TRA-ACK-001"},
        headers=auth_headers,
    )
    assert submitted.status_code == 200, submitted.text
    data = submitted.json()["data"]
    assert data["status"] == "submitted"
    assert data["submission_reference"] == "TRA-ACK-001"
    assert data["submitted_at"] is not None
    assert data["paid_at"] is None

    paid = await client.patch(
        url,
        json={"target_status": "paid", "payment_reference": "PRN-99"},
        headers=auth_headers,
    )
    assert paid.status_code == 200
    assert paid.json()["data"]["status"] == "paid"
    assert paid.json()["data"]["paid_at"] is not None


@pytest.mark.asyncio
async def test_filing_status_rejects_amended_target(
    client: AsyncClient,
    test_company: Company,
    paye_filing_id: str,
    auth_headers: dict[str, str],
) -> None:
    response = await client.patch(
        _url(test_company.id, f"/{paye_filing_id}/status"),
        json={"target_status": "amended"},
        headers=auth_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_viewer_cannot_change_filing_status(
    client: AsyncClient,
    test_company: Company,
    paye_filing_id: str,
    viewer_headers: dict[str, str],
) -> None:
    response = await client.patch(
        _url(test_company.id, f"/{paye_filing_id}/status"),
        json={"target_status": "submitted"},
        headers=viewer_headers,
    )
    assert response.status_code == 403
