import re

import pytest

PATIENT = {
    "prefix": "Mr.",
    "patient_name": "Ravi Kumar",
    "age": "42",
    "gender": "Male",
    "weight": "72",
    "bp": "130/85",
    "rbs": "140",
    "address": "12 Lake Road, Springfield",
    "reference_person": "Anita Kumar",
    "contact_number": "9876543210",
    "patient_problem": "Persistent cough for two weeks",
}


@pytest.fixture
def doctor(login):
    return login("doc@example.com")


@pytest.fixture
def other_doctor(login):
    return login("other@example.com")


def create(client, headers, **overrides):
    response = client.post("/api/patients", json={**PATIENT, **overrides}, headers=headers)
    assert response.status_code == 201, response.json()
    return response.json()["data"]


def test_create_then_get_round_trips_fields(client, doctor):
    created = create(client, doctor)

    response = client.get(f"/api/patients/{created['id']}", headers=doctor)

    assert response.status_code == 200
    fetched = response.json()["data"]
    for key, value in PATIENT.items():
        assert fetched[key] == value
    assert re.fullmatch(r"ID-\d{6}-\d{3}", fetched["reference_number"])
    assert fetched["visits"] == []


def test_create_seeds_visit_from_prescription(client, doctor):
    created = create(
        client, doctor,
        medicine_prescriptions="Azithromycin 500mg OD x 3 days",
        advisories="Steam inhalation",
    )

    assert len(created["visits"]) == 1
    visit = created["visits"][0]
    assert visit["medicine_prescriptions"] == "Azithromycin 500mg OD x 3 days"
    assert visit["advisories"] == "Steam inhalation"
    assert visit["id"] and visit["date"]


def test_create_seeds_visit_from_advisory_alone(client, doctor):
    created = create(client, doctor, advisories="Rest for a week")

    assert len(created["visits"]) == 1
    assert created["visits"][0]["medicine_prescriptions"] == ""


def test_create_keeps_supplied_reference_number(client, doctor):
    created = create(client, doctor, reference_number="REF-001")

    assert created["reference_number"] == "REF-001"


def test_duplicate_reference_number_is_rejected(client, doctor, other_doctor):
    create(client, doctor, reference_number="REF-001")

    response = client.post(
        "/api/patients", json={**PATIENT, "reference_number": "REF-001"}, headers=other_doctor
    )

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_generated_reference_numbers_are_unique(client, doctor):
    references = {create(client, doctor)["reference_number"] for _ in range(5)}

    assert len(references) == 5


def test_create_requires_identity_and_contact_fields(client, doctor):
    body = {key: value for key, value in PATIENT.items() if key != "contact_number"}

    response = client.post("/api/patients", json=body, headers=doctor)

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Invalid or missing fields in request"}


def test_numeric_age_is_stored_as_text(client, doctor):
    created = create(client, doctor, age=42)

    assert created["age"] == "42"


def test_list_returns_only_own_records(client, doctor, other_doctor):
    mine = create(client, doctor)
    create(client, other_doctor, patient_name="Someone Else")

    response = client.get("/api/patients", headers=doctor)

    assert [p["id"] for p in response.json()["data"]] == [mine["id"]]


def test_other_owner_sees_not_found(client, doctor, other_doctor):
    patient_id = create(client, doctor)["id"]

    assert client.get("/api/patients", headers=other_doctor).json()["data"] == []
    for response in (
        client.get(f"/api/patients/{patient_id}", headers=other_doctor),
        client.put(f"/api/patients/{patient_id}", json={"age": "50"}, headers=other_doctor),
        client.delete(f"/api/patients/{patient_id}", headers=other_doctor),
        client.post(
            f"/api/patients/{patient_id}/visits",
            json={"medicine_prescriptions": "x"},
            headers=other_doctor,
        ),
    ):
        assert response.status_code == 404
        assert response.json()["message"] == "Patient not found"

    # Untouched for the owner
    assert client.get(f"/api/patients/{patient_id}", headers=doctor).json()["data"]["age"] == "42"


def test_unknown_patient_is_not_found(client, doctor):
    response = client.get("/api/patients/does-not-exist", headers=doctor)

    assert response.status_code == 404


def test_update_changes_only_supplied_fields(client, doctor):
    patient = create(client, doctor)

    response = client.put(
        f"/api/patients/{patient['id']}",
        json={"age": "43", "address": ""},
        headers=doctor,
    )

    assert response.status_code == 200
    updated = response.json()["data"]
    assert updated["age"] == "43"
    assert updated["address"] == ""
    assert updated["patient_name"] == PATIENT["patient_name"]
    assert updated["bp"] == PATIENT["bp"]


def test_update_ignores_empty_required_fields(client, doctor):
    patient = create(client, doctor)

    updated = client.put(
        f"/api/patients/{patient['id']}",
        json={"patient_name": "", "contact_number": "", "reference_person": ""},
        headers=doctor,
    ).json()["data"]

    assert updated["patient_name"] == PATIENT["patient_name"]
    assert updated["contact_number"] == PATIENT["contact_number"]
    assert updated["reference_person"] == ""


def test_update_replaces_visit_list_wholesale(client, doctor):
    patient = create(client, doctor, medicine_prescriptions="Old prescription")
    kept_id = patient["visits"][0]["id"]

    response = client.put(
        f"/api/patients/{patient['id']}",
        json={
            "visits": [
                {"id": kept_id, "medicine_prescriptions": "Edited prescription"},
                {"medicine_prescriptions": "Brand new", "notes": "added by edit"},
            ]
        },
        headers=doctor,
    )

    visits = response.json()["data"]["visits"]
    assert [v["medicine_prescriptions"] for v in visits] == ["Edited prescription", "Brand new"]
    assert visits[0]["id"] == kept_id

    cleared = client.put(f"/api/patients/{patient['id']}", json={"visits": []}, headers=doctor)
    assert cleared.json()["data"]["visits"] == []


def test_visits_seeded_from_advisory_can_be_sent_back(client, doctor):
    patient = create(client, doctor, advisories="Rest")

    response = client.put(
        f"/api/patients/{patient['id']}",
        json={"age": "43", "visits": patient["visits"]},
        headers=doctor,
    )

    assert response.status_code == 200, response.json()
    updated = response.json()["data"]
    assert updated["age"] == "43"
    assert [v["id"] for v in updated["visits"]] == [patient["visits"][0]["id"]]
    assert updated["visits"][0]["advisories"] == "Rest"
    assert updated["visits"][0]["medicine_prescriptions"] == ""


def test_new_visit_in_replacement_list_needs_prescription(client, doctor):
    patient = create(client, doctor)

    response = client.put(
        f"/api/patients/{patient['id']}",
        json={"visits": [{"notes": "no prescription"}]},
        headers=doctor,
    )

    assert response.status_code == 400


def test_delete_removes_record(client, doctor):
    patient = create(client, doctor, medicine_prescriptions="Something")

    response = client.delete(f"/api/patients/{patient['id']}", headers=doctor)

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert client.get(f"/api/patients/{patient['id']}", headers=doctor).status_code == 404
    assert client.delete(f"/api/patients/{patient['id']}", headers=doctor).status_code == 404


def test_add_visit_appends_and_updates_vitals(client, doctor):
    patient = create(client, doctor, medicine_prescriptions="First")

    response = client.post(
        f"/api/patients/{patient['id']}/visits",
        json={"medicine_prescriptions": "Second", "notes": "Better", "weight": "70", "bp": "120/80"},
        headers=doctor,
    )

    assert response.status_code == 201
    updated = response.json()["data"]
    assert [v["medicine_prescriptions"] for v in updated["visits"]] == ["First", "Second"]
    assert updated["visits"][1]["notes"] == "Better"
    assert updated["weight"] == "70"
    assert updated["bp"] == "120/80"
    assert updated["rbs"] == PATIENT["rbs"]


def test_add_visit_requires_prescription(client, doctor):
    patient = create(client, doctor)

    response = client.post(
        f"/api/patients/{patient['id']}/visits", json={"notes": "no prescription"}, headers=doctor
    )

    assert response.status_code == 400


def test_update_visit_changes_supplied_fields(client, doctor):
    patient = create(client, doctor, medicine_prescriptions="Original", advisories="Keep me")
    visit_id = patient["visits"][0]["id"]

    response = client.put(
        f"/api/patients/{patient['id']}/visits/{visit_id}",
        json={"notes": "Reviewed"},
        headers=doctor,
    )

    assert response.status_code == 200
    visit = response.json()["data"]["visits"][0]
    assert visit["notes"] == "Reviewed"
    assert visit["medicine_prescriptions"] == "Original"
    assert visit["advisories"] == "Keep me"


def test_update_unknown_visit_is_not_found(client, doctor):
    patient = create(client, doctor)

    response = client.put(
        f"/api/patients/{patient['id']}/visits/missing", json={"notes": "x"}, headers=doctor
    )

    assert response.status_code == 404
    assert response.json()["message"] == "Treatment entry not found"


def test_remove_visit_twice_is_not_found(client, doctor):
    patient = create(client, doctor, medicine_prescriptions="Only visit")
    url = f"/api/patients/{patient['id']}/visits/{patient['visits'][0]['id']}"

    first = client.delete(url, headers=doctor)
    second = client.delete(url, headers=doctor)

    assert first.status_code == 200
    assert first.json()["data"]["visits"] == []
    assert second.status_code == 404


def test_search_matches_record_and_visit_text(client, doctor):
    ravi = create(client, doctor)
    meena = create(client, doctor, patient_name="Meena Iyer", patient_problem="Migraine")
    client.post(
        f"/api/patients/{meena['id']}/visits",
        json={"medicine_prescriptions": "Sumatriptan 50mg"},
        headers=doctor,
    )

    def search(term):
        response = client.get("/api/patients", params={"search": term}, headers=doctor)
        return [p["id"] for p in response.json()["data"]]

    assert search("ravi") == [ravi["id"]]
    assert search("SUMATRIPTAN") == [meena["id"]]
    assert search("nothing like this") == []
    assert len(search("")) == 2
