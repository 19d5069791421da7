from vetclinic import crud, models


def test_profile_not_found_before_first_save(client, bare_headers):
    response = client.get("/api/v1/profile", headers=bare_headers)
    assert response.status_code == 404


def test_save_profile_creates_then_updates(client, bare_headers):
    response = client.put("/api/v1/profile", json={"name": "Dr. João", "crmv_state": "rj"}, headers=bare_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["name"] == "Dr. João"
    assert body["crmv_state"] == "RJ"
    assert body["email"] == "newcomer@example.com"

    response = client.put("/api/v1/profile", json={"crmv_number": "999", "phone": "21999990000"}, headers=bare_headers)
    body = response.json()
    assert body["name"] == "Dr. João"
    assert body["registration"] == "CRMV-RJ 999"

    assert client.get("/api/v1/profile", headers=bare_headers).json()["phone"] == "21999990000"


def test_email_is_not_editable(client, bare_headers):
    response = client.put("/api/v1/profile", json={"name": "Dr. João", "email": "changed@example.com"}, headers=bare_headers)
    assert response.status_code == 200
    assert response.json()["email"] == "newcomer@example.com"


def test_profile_rejects_invalid_cpf_and_state(client, bare_headers):
    response = client.put("/api/v1/profile", json={"cpf": "111.111.111-11", "crmv_state": "ZZ"}, headers=bare_headers)
    assert response.status_code == 422
    assert set(response.json()["errors"]) == {"cpf", "crmv_state"}


def test_profile_status_reports_missing_fields(client, bare_headers):
    response = client.get("/api/v1/profile/status", headers=bare_headers)
    assert response.json() == {"complete": False, "missing_fields": ["name", "crmv_number", "phone"]}

    client.put("/api/v1/profile", json={"name": "Dr. João", "crmv_number": "  "}, headers=bare_headers)
    response = client.get("/api/v1/profile/status", headers=bare_headers)
    assert response.json()["missing_fields"] == ["crmv_number", "phone"]


def test_profile_status_complete(client, auth_headers):
    assert client.get("/api/v1/profile/status", headers=auth_headers).json() == {"complete": True, "missing_fields": []}


def test_is_profile_complete_predicate():
    assert not crud.is_profile_complete(None)
    profile = models.PractitionerProfile(name="Ana", crmv_number="1", phone="")
    assert not crud.is_profile_complete(profile)
    profile.phone = "11999990000"
    assert crud.is_profile_complete(profile)


def test_profile_requires_authentication(client):
    response = client.get("/api/v1/profile", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_practitioner_cpf_is_encrypted_at_rest(client, bare_headers, db):
    response = client.put("/api/v1/profile", json={"name": "Dr. João", "cpf": "11144477735"}, headers=bare_headers)
    assert response.status_code == 200
    assert response.json()["cpf"] == "111.444.777-35"

    user_id = client.get("/api/v1/auth/me", headers=bare_headers).json()["id"]
    row = db.query(models.PractitionerProfile).filter(models.PractitionerProfile.practitioner_id == user_id).one()
    assert b"111.444.777-35" not in row.cpf_encrypted
    assert b"11144477735" not in row.cpf_encrypted
    assert client.get("/api/v1/profile", headers=bare_headers).json()["cpf"] == "111.444.777-35"

    # saving other fields leaves the stored CPF alone
    client.put("/api/v1/profile", json={"phone": "21999990000"}, headers=bare_headers)
    assert client.get("/api/v1/profile", headers=bare_headers).json()["cpf"] == "111.444.777-35"
