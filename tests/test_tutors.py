from vetclinic import models
from vetclinic.security import encryption_service


def test_create_tutor_normalizes_and_encrypts_cpf(client, auth_headers, tutor, db):
    assert tutor["name"] == "Maria Santos"
    assert tutor["cpf"] == "111.444.777-35"

    row = db.query(models.Tutor).filter(models.Tutor.id == tutor["id"]).one()
    assert b"111.444.777-35" not in row.cpf_encrypted
    assert encryption_service.decrypt(row.cpf_encrypted) == "111.444.777-35"
    # no unkeyed digest of the CPF is kept next to the ciphertext
    assert not hasattr(row, "cpf_hash")


def test_bare_cpf_digits_are_formatted(client, auth_headers):
    response = client.post("/api/v1/tutors", json={"name": "João", "phone": "11911112222", "cpf": "11144477735"}, headers=auth_headers)
    assert response.status_code == 201
    assert response.json()["cpf"] == "111.444.777-35"


def test_create_tutor_rejects_bad_checksum(client, auth_headers):
    response = client.post("/api/v1/tutors", json={
        "name": "Maria Santos", "phone": "11999990000", "email": "maria@x.com", "cpf": "111.111.111-11",
    }, headers=auth_headers)
    assert response.status_code == 422
    assert "cpf" in response.json()["errors"]


def test_create_tutor_lists_all_blank_mandatory_fields(client, auth_headers):
    response = client.post("/api/v1/tutors", json={"name": " ", "phone": ""}, headers=auth_headers)
    assert response.status_code == 422
    assert set(response.json()["errors"]) == {"name", "phone"}


def test_list_tutors_sorted_by_name_and_searchable(client, auth_headers):
    for name in ["zélia", "Bruno", "ana"]:
        client.post("/api/v1/tutors", json={"name": name, "phone": "11900000000"}, headers=auth_headers)

    names = [t["name"] for t in client.get("/api/v1/tutors", headers=auth_headers).json()]
    assert names == ["ana", "Bruno", "zélia"]

    found = client.get("/api/v1/tutors", params={"search": "BRU"}, headers=auth_headers).json()
    assert [t["name"] for t in found] == ["Bruno"]


def test_update_tutor_validates_merged_record(client, auth_headers, tutor):
    response = client.put(f"/api/v1/tutors/{tutor['id']}", json={"phone": "11955554444"}, headers=auth_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["phone"] == "11955554444"
    assert body["name"] == "Maria Santos"
    assert body["cpf"] == "111.444.777-35"

    response = client.put(f"/api/v1/tutors/{tutor['id']}", json={"name": ""}, headers=auth_headers)
    assert response.status_code == 422
    assert "name" in response.json()["errors"]


def test_tutors_are_scoped_to_their_practitioner(client, auth_headers, other_headers, tutor):
    assert client.get(f"/api/v1/tutors/{tutor['id']}", headers=other_headers).status_code == 404
    assert client.put(f"/api/v1/tutors/{tutor['id']}", json={"name": "X"}, headers=other_headers).status_code == 404
    assert client.delete(f"/api/v1/tutors/{tutor['id']}", headers=other_headers).status_code == 404
    assert client.get("/api/v1/tutors", headers=other_headers).json() == []


def test_delete_tutor_cascades_to_patients_and_appointments(client, auth_headers, tutor, patient, db):
    other_tutor = client.post("/api/v1/tutors", json={"name": "Carlos", "phone": "11977776666"}, headers=auth_headers).json()
    other_patient = client.post(
        f"/api/v1/tutors/{other_tutor['id']}/patients", json={"name": "Mia", "species": "feline"}, headers=auth_headers
    ).json()
    client.post("/api/v1/appointments", json={
        "tutor_id": tutor["id"], "patient_id": patient["id"],
        "start_time": "2026-11-02T09:00:00-03:00", "end_time": "2026-11-02T09:30:00-03:00",
    }, headers=auth_headers)

    response = client.delete(f"/api/v1/tutors/{tutor['id']}", headers=auth_headers)
    assert response.status_code == 204

    assert client.get(f"/api/v1/tutors/{tutor['id']}", headers=auth_headers).status_code == 404
    assert client.get(f"/api/v1/patients/{patient['id']}", headers=auth_headers).status_code == 404
    assert db.query(models.Appointment).count() == 0
    # unrelated records survive
    assert client.get(f"/api/v1/patients/{other_patient['id']}", headers=auth_headers).status_code == 200
    assert db.query(models.Patient).filter(models.Patient.tutor_id == tutor["id"]).count() == 0


def test_delete_tutor_with_issued_documents_is_refused(client, auth_headers, tutor, patient, issue_document):
    assert issue_document().status_code == 201

    response = client.delete(f"/api/v1/tutors/{tutor['id']}", headers=auth_headers)
    assert response.status_code == 409

    assert client.get(f"/api/v1/tutors/{tutor['id']}", headers=auth_headers).status_code == 200
    patient_response = client.get(f"/api/v1/patients/{patient['id']}", headers=auth_headers)
    assert patient_response.status_code == 200
    assert patient_response.json()["tutor_id"] == tutor["id"]


def test_tutor_routes_require_authentication(client):
    response = client.get("/api/v1/tutors")
    assert response.status_code == 401
