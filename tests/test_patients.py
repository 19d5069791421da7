from vetclinic import crud, schemas
from vetclinic.errors import ValidationError, NotFound

import pytest


def test_create_patient_accepts_species_case_insensitively(patient):
    assert patient["name"] == "Rex"
    assert patient["species"] == "canine"
    assert patient["display_age"].endswith(("ano", "anos"))


def test_create_patient_blank_name_fails_on_name(client, auth_headers, tutor):
    response = client.post(f"/api/v1/tutors/{tutor['id']}/patients", json={"name": "", "species": "Canine"}, headers=auth_headers)
    assert response.status_code == 422
    assert list(response.json()["errors"]) == ["name"]


def test_create_patient_requires_species(client, auth_headers, tutor):
    response = client.post(f"/api/v1/tutors/{tutor['id']}/patients", json={"name": "Tom"}, headers=auth_headers)
    assert response.status_code == 422
    assert "species" in response.json()["errors"]


def test_free_text_age_is_used_without_birth_date(client, auth_headers, tutor):
    response = client.post(f"/api/v1/tutors/{tutor['id']}/patients", json={
        "name": "Loro", "species": "avian", "age": "cerca de 10 anos",
    }, headers=auth_headers)
    assert response.json()["display_age"] == "cerca de 10 anos"


def test_list_by_tutor_is_name_ordered(client, auth_headers, tutor, patient):
    client.post(f"/api/v1/tutors/{tutor['id']}/patients", json={"name": "Bella", "species": "feline"}, headers=auth_headers)
    names = [p["name"] for p in client.get(f"/api/v1/tutors/{tutor['id']}/patients", headers=auth_headers).json()]
    assert names == ["Bella", "Rex"]


def test_update_patient(client, auth_headers, patient):
    response = client.put(f"/api/v1/patients/{patient['id']}", json={"weight": "30 kg", "neutered": True}, headers=auth_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["weight"] == "30 kg"
    assert body["neutered"] is True
    assert body["name"] == "Rex"

    response = client.put(f"/api/v1/patients/{patient['id']}", json={"name": "  "}, headers=auth_headers)
    assert response.status_code == 422


def test_delete_patient_without_documents(client, auth_headers, patient):
    assert client.delete(f"/api/v1/patients/{patient['id']}", headers=auth_headers).status_code == 204
    assert client.get(f"/api/v1/patients/{patient['id']}", headers=auth_headers).status_code == 404


def test_delete_patient_with_documents_is_refused(client, auth_headers, patient, issue_document):
    issue_document()
    assert client.delete(f"/api/v1/patients/{patient['id']}", headers=auth_headers).status_code == 409


def test_patients_are_scoped_to_their_practitioner(client, other_headers, tutor, patient):
    assert client.get(f"/api/v1/patients/{patient['id']}", headers=other_headers).status_code == 404
    assert client.get(f"/api/v1/tutors/{tutor['id']}/patients", headers=other_headers).status_code == 404
    response = client.post(f"/api/v1/tutors/{tutor['id']}/patients", json={"name": "X", "species": "other"}, headers=other_headers)
    assert response.status_code == 404


def test_crud_create_patient_unknown_tutor(db, client, auth_headers):
    user_id = client.get("/api/v1/auth/me", headers=auth_headers).json()["id"]
    with pytest.raises(NotFound):
        crud.create_patient(db, user_id, 999, schemas.PatientCreate(name="Rex", species="canine"))


def test_crud_create_patient_blank_name(db, client, auth_headers, tutor):
    user_id = client.get("/api/v1/auth/me", headers=auth_headers).json()["id"]
    with pytest.raises(ValidationError) as excinfo:
        crud.create_patient(db, user_id, tutor["id"], schemas.PatientCreate(name="", species="Canine"))
    assert excinfo.value.errors == {"name": "Name is required."}
