# tests/conftest.py
import os
import tempfile
import uuid

from cryptography.fernet import Fernet

_DB_DIR = tempfile.mkdtemp(prefix="vetclinic-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["SECRET_KEY"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["ENCRYPTION_KEY"] = Fernet.generate_key().decode()
os.environ["PUBLIC_BASE_URL"] = "https://vet.example.com/"
os.environ["PUBLIC_RATE_LIMIT"] = "1000/minute"
os.environ["ENVIRONMENT"] = "testing"

import pytest
from fastapi.testclient import TestClient

from vetclinic.database import Base, engine, SessionLocal
from vetclinic.limiter import limiter
from vetclinic.main import app
from vetclinic import models  # noqa: F401

PASSWORD = "s3cret-pass"

COMPLETE_PROFILE = {
    "name": "Dra. Ana Ribeiro",
    "crmv_state": "SP",
    "crmv_number": "12345",
    "phone": "11988887777",
    "clinic_name": "Clínica Patas",
    "street": "Rua das Flores",
    "number": "100",
    "city": "São Paulo",
    "state": "SP",
    "cep": "01001-000",
}


@pytest.fixture(autouse=True)
def fresh_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    limiter.reset()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


def _login(client, email):
    response = client.post("/api/v1/auth/register", json={"email": email, "password": PASSWORD})
    assert response.status_code == 201, response.text
    response = client.post("/api/v1/auth/token", data={"username": email, "password": PASSWORD})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def bare_headers(client):
    """Logged-in practitioner without a profile."""
    return _login(client, "newcomer@example.com")


@pytest.fixture
def auth_headers(client):
    """Logged-in practitioner with a complete profile."""
    headers = _login(client, "ana@example.com")
    response = client.put("/api/v1/profile", json=COMPLETE_PROFILE, headers=headers)
    assert response.status_code == 200, response.text
    return headers


@pytest.fixture
def other_headers(client):
    headers = _login(client, "other@example.com")
    client.put("/api/v1/profile", json={**COMPLETE_PROFILE, "name": "Dr. Outro"}, headers=headers)
    return headers


@pytest.fixture
def tutor(client, auth_headers):
    response = client.post("/api/v1/tutors", json={
        "name": "Maria Santos",
        "phone": "11999990000",
        "email": "maria@x.com",
        "cpf": "111.444.777-35",
        "street": "Av. Paulista",
        "number": "1000",
        "city": "São Paulo",
        "state": "SP",
    }, headers=auth_headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def patient(client, auth_headers, tutor):
    response = client.post(f"/api/v1/tutors/{tutor['id']}/patients", json={
        "name": "Rex",
        "species": "Canine",
        "breed": "Labrador",
        "weight": "28 kg",
        "date_of_birth": "2021-03-10",
    }, headers=auth_headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def issue_document(client, auth_headers, patient):
    """Factory issuing a document for ``patient``; returns the HTTP response."""
    def _issue(document_type="prescription", headers=None, **overrides):
        body = {
            "patient_id": patient["id"],
            "document_type": document_type,
            "purpose": "Ear infection",
            "draft_id": str(uuid.uuid4()),
        }
        if document_type == "prescription":
            body["medications"] = [{"name": "Amoxicillin", "dosage": "50mg", "frequency": "12h", "duration": "7 days"}]
        else:
            body["attestation_text"] = "Animal in good health, fit to travel."
        body.update(overrides)
        return client.post("/api/v1/prescriptions", json=body, headers=headers or auth_headers)
    return _issue
