from __future__ import annotations

from datetime import date
from io import BytesIO

from openpyxl import Workbook

from app import crud, schemas


def _entry(project_id=None, **overrides):
    payload = {
        "entry_date": "2024-03-04",
        "hours": 6,
        "category": "project_work",
        "project_id": project_id,
        "work_package_code": "AP1",
    }
    payload.update(overrides)
    return payload


def test_projects_and_work_packages(admin_client):
    created = admin_client.post(
        "/api/projects",
        json={"name": "Leichtbau", "funding_reference": "KF0001", "funding_format": "zim", "funding_rate": 55},
    )
    assert created.status_code == 201
    project_id = created.json()["id"]
    assert created.json()["funding_format"] == "ZIM"

    package = admin_client.post(f"/api/projects/{project_id}/work-packages", json={"code": "AP1", "description": "Konzept"})
    assert package.status_code == 201
    duplicate = admin_client.post(
        f"/api/projects/{project_id}/work-packages", json={"code": "AP1", "description": "Nochmal"}
    )
    assert duplicate.status_code == 409

    listed = admin_client.get(f"/api/projects/{project_id}/work-packages").json()
    assert [item["code"] for item in listed] == ["AP1"]
    assert [item["name"] for item in admin_client.get("/api/projects").json()] == ["Leichtbau"]


def test_invalid_funding_format_is_rejected(admin_client):
    response = admin_client.post("/api/projects", json={"name": "X", "funding_format": "EU"})
    assert response.status_code == 422


def test_assignment_and_salary(admin_client, employee, project, db):
    first = admin_client.post(f"/api/projects/{project.id}/assignments", json={"user_profile_id": employee.id})
    assert first.json()["project_employee_number"] == 1

    renumbered = admin_client.post(
        f"/api/projects/{project.id}/assignments", json={"user_profile_id": employee.id, "project_employee_number": 4}
    )
    assert renumbered.json()["project_employee_number"] == 4
    reassigned = admin_client.post(f"/api/projects/{project.id}/assignments", json={"user_profile_id": employee.id})
    assert reassigned.json()["project_employee_number"] == 4
    assert crud.get_employee_numbers(db, project.id) == {employee.id: 4}

    salary = admin_client.post(f"/api/employees/{employee.id}/salaries", json={"year": 2024, "hourly_rate": 42.5})
    assert salary.status_code == 200
    again = admin_client.post(f"/api/employees/{employee.id}/salaries", json={"year": 2024, "hourly_rate": 44})
    assert again.json()["id"] == salary.json()["id"]
    assert crud.get_salary_rates(db, [employee.id], [2024]) == {employee.id: {2024: 44.0}}


def _work_package_file() -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet["A4"] = "AP1"
    sheet["B4"] = "Konzeption"
    sheet["A5"] = "AP2"
    sheet["B5"] = "Prototyp"
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def test_work_package_import(admin_client, project, db):
    crud.create_work_package(db, project, schemas.WorkPackageCreate(code="AP1", description="Vorhanden"))
    files = {"file": ("ap.xlsx", _work_package_file(), "application/octet-stream")}

    missing_project = admin_client.post("/api/work-packages/import", files=files)
    assert missing_project.json()["detail"] == "Projekt-ID fehlt"

    preview = admin_client.post(
        "/api/work-packages/import", files=files, data={"projectId": str(project.id), "previewOnly": "true"}
    )
    assert preview.json()["preview"] is True
    assert preview.json()["count"] == 2

    imported = admin_client.post("/api/work-packages/import", files=files, data={"projectId": str(project.id)})
    body = imported.json()
    assert body["imported"] == 1
    assert body["skipped"] == 1
    assert body["workPackages"][0]["code"] == "AP2"

    repeated = admin_client.post("/api/work-packages/import", files=files, data={"projectId": str(project.id)})
    assert repeated.status_code == 400
    assert repeated.json() == {"error": "Alle Arbeitspakete existieren bereits", "skipped": 2}


def test_work_package_import_requires_file(admin_client, project):
    response = admin_client.post("/api/work-packages/import", data={"projectId": str(project.id)})
    assert response.status_code == 400
    assert response.json()["detail"] == "Keine Datei hochgeladen"


def test_create_time_entry(employee_client, project):
    response = employee_client.post("/api/time-entries", json=_entry(project.id))
    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Zeiteintrag erfolgreich erstellt"
    assert body["entry"]["status"] == "draft"
    assert body["entry"]["break_minutes"] == 0

    duplicate = employee_client.post("/api/time-entries", json=_entry(project.id, hours=2))
    assert duplicate.status_code == 400
    assert duplicate.json()["detail"] == "Ein Eintrag für dieses Datum, Projekt und Arbeitspaket existiert bereits"

    other_package = employee_client.post("/api/time-entries", json=_entry(project.id, work_package_code="AP2"))
    assert other_package.status_code == 201


def test_time_entry_validation(employee_client, project):
    missing = employee_client.post("/api/time-entries", json={"hours": 3})
    assert missing.json()["detail"] == "Missing required fields"

    too_long = employee_client.post("/api/time-entries", json=_entry(project.id, hours=25))
    assert too_long.status_code == 400

    unknown = employee_client.post("/api/time-entries", json=_entry(project.id, category="party"))
    assert unknown.status_code == 400

    no_project = employee_client.post("/api/time-entries", json=_entry(None))
    assert no_project.status_code == 400

    vacation = employee_client.post(
        "/api/time-entries", json=_entry(None, category="vacation", work_package_code=None, hours=8)
    )
    assert vacation.status_code == 201


def test_entries_are_scoped_to_the_employee(client, admin, employee, project, db):
    crud.create_time_entry(
        db, admin, schemas.TimeEntryCreate(entry_date=date(2024, 3, 4), hours=4, category="project_work", project_id=project.id)
    )
    crud.create_time_entry(
        db, employee, schemas.TimeEntryCreate(entry_date=date(2024, 3, 5), hours=8, category="sick_leave")
    )
    crud.create_time_entry(
        db,
        employee,
        schemas.TimeEntryCreate(entry_date=date(2024, 3, 6), hours=5, category="project_work", project_id=project.id),
    )

    client.post("/api/auth/login", json={"email": employee.email, "password": "geheim123"})
    own = client.get("/api/time-entries", params={"user_profile_id": admin.id}).json()
    assert {entry["user_profile_id"] for entry in own} == {employee.id}
    assert [entry["entry_date"] for entry in own] == ["2024-03-06", "2024-03-05"]

    summary = client.get("/api/time-entries/summary", params={"start_date": "2024-03-06"}).json()
    assert summary["total_hours"] == 5
    assert summary["project_hours"] == 5
    assert summary["count"] == 1

    client.post("/api/auth/login", json={"email": admin.email, "password": "geheim123"})
    everything = client.get("/api/time-entries").json()
    assert len(everything) == 3


def test_delete_time_entry(client, admin, employee, project, db):
    entry = crud.create_time_entry(
        db, admin, schemas.TimeEntryCreate(entry_date=date(2024, 3, 4), hours=4, category="vacation")
    )
    client.post("/api/auth/login", json={"email": employee.email, "password": "geheim123"})
    assert client.delete(f"/api/time-entries/{entry.id}").status_code == 403

    client.post("/api/auth/login", json={"email": admin.email, "password": "geheim123"})
    assert client.delete(f"/api/time-entries/{entry.id}").json()["success"] is True
    assert client.delete(f"/api/time-entries/{entry.id}").status_code == 404
