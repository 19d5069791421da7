import httpx
import pytest

from vetclinic.config import get_settings
from vetclinic.main import app

NOT_FOUND = "Document not found or invalid verification code."


def test_public_view_exposes_only_the_projection(client, issue_document):
    code = issue_document().json()["public_code"]

    response = client.get(f"/api/v1/public/prescriptions/{code}")
    assert response.status_code == 200
    body = response.json()
    assert set(body) == {
        "public_code", "document_type", "issue_date", "purpose", "medications",
        "attestation_text", "patient", "tutor", "practitioner",
    }
    assert body["public_code"] == code
    assert body["tutor"] == {"name": "Maria Santos"}
    assert set(body["patient"]) == {"name", "species", "breed", "age", "weight"}
    assert body["patient"]["species"] == "canine"
    assert body["practitioner"] == {"name": "Dra. Ana Ribeiro", "registration": "CRMV-SP 12345"}
    assert body["medications"][0]["name"] == "Amoxicillin"

    # no tutor contact data or identity document leaks
    assert "11999990000" not in response.text
    assert "Paulista" not in response.text
    assert "111.444.777-35" not in response.text
    assert "maria@x.com" not in response.text


def test_public_code_lookup_ignores_case(client, issue_document):
    code = issue_document().json()["public_code"]
    response = client.get(f"/api/v1/public/prescriptions/{code.upper()}")
    assert response.status_code == 200
    assert response.json()["public_code"] == code


def test_unknown_code(client):
    response = client.get("/api/v1/public/prescriptions/00000000-0000-4000-8000-000000000000")
    assert response.status_code == 404
    assert response.json()["detail"] == NOT_FOUND

    response = client.get("/api/v1/public/prescriptions/not-a-code")
    assert response.status_code == 404


def test_verification_is_audited_for_the_owner(client, auth_headers, issue_document):
    code = issue_document().json()["public_code"]
    client.get(f"/api/v1/public/prescriptions/{code}")

    logs = client.get("/api/v1/logs", params={"action": "verify"}, headers=auth_headers).json()
    assert len(logs) == 1
    assert logs[0]["category"] == "PUBLIC_VERIFICATION"


def test_verification_page(client, issue_document):
    code = issue_document("attestation").json()["public_code"]

    response = client.get(f"/view-prescription/{code}")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert "Documento autêntico" in response.text
    assert "Rex" in response.text
    assert "Animal in good health" in response.text


def test_verification_page_unknown_code(client):
    response = client.get("/view-prescription/whatever")
    assert response.status_code == 404
    assert "Documento não encontrado" in response.text


def test_public_surface_is_rate_limited(client, issue_document, monkeypatch):
    code = issue_document().json()["public_code"]
    monkeypatch.setattr(get_settings(), "public_rate_limit", "2/minute")

    statuses = [client.get(f"/api/v1/public/prescriptions/{code}").status_code for _ in range(3)]
    assert statuses == [200, 200, 429]


@pytest.fixture
def issued_code(issue_document):
    return issue_document().json()["public_code"]


async def test_public_view_over_asgi(issued_code):
    code = issued_code

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.get(f"/api/v1/public/prescriptions/{code}")
        missing = await ac.get("/api/v1/public/prescriptions/unknown")

    assert response.status_code == 200
    assert response.json()["patient"]["name"] == "Rex"
    assert missing.status_code == 404
    assert missing.json()["detail"] == NOT_FOUND
