from __future__ import annotations

from datetime import date, datetime
from io import BytesIO

from conftest import disposition
from openpyxl import Workbook, load_workbook

from app import crud, models, pdf_export, schemas
from app.config import settings


def _fzul_timesheet(**overrides):
    timesheet = {
        "employee_name": "Mustermann, Max",
        "year": 2024,
        "daily_data": {
            "2024-01-01": {"type": "holiday", "free": 0, "holiday_name": "Neuj."},
            "2024-01-02": {"type": "work", "free": 8},
            "2024-01-03": {"type": "vacation", "free": 0},
        },
        "yearly_calculation": {"weekly_hours": 40, "vacation_days_contract": 30, "holiday_count": 11},
        "project_title": "Sensorplattform",
    }
    timesheet.update(overrides)
    return timesheet


def test_fzul_hour_sheet(admin_client, employee, project, db):
    crud.create_time_entry(
        db,
        employee,
        schemas.TimeEntryCreate(entry_date=date(2024, 1, 2), hours=6, category="project_work", project_id=project.id),
    )
    crud.create_time_entry(
        db, employee, schemas.TimeEntryCreate(entry_date=date(2024, 1, 3), hours=8, category="vacation")
    )
    response = admin_client.post(
        "/api/reports/fzul-stundennachweis",
        json={
            "userId": employee.id,
            "projectId": project.id,
            "year": 2024,
            "kurzbezeichnungVorhaben": "Sensorplattform",
            "vorhabenId": "V-1",
            "kurzbezeichnungFueTaetigkeit": "Entwicklung",
        },
    )
    assert response.status_code == 200
    assert response.headers["content-disposition"] == disposition("FZul_Stundennachweis_Mustermann_2024.pdf")
    assert response.content.startswith(b"%PDF")


def test_fzul_hour_sheet_validation(admin_client):
    missing = admin_client.post("/api/reports/fzul-stundennachweis", json={"userId": 1})
    assert missing.status_code == 400
    assert missing.json()["detail"] == "userId und year sind erforderlich"

    unknown = admin_client.post("/api/reports/fzul-stundennachweis", json={"userId": 9999, "year": 2024})
    assert unknown.status_code == 404
    assert unknown.json()["detail"] == "Mitarbeiter nicht gefunden"

    months = admin_client.post("/api/reports/fzul-stundennachweis", json={"userId": 1, "year": 2024, "monateFue": 13})
    assert months.status_code == 422


def test_monthly_timesheet(admin_client, employee, project, db):
    crud.create_work_package(db, project, schemas.WorkPackageCreate(code="AP1", description="Konzeption"))
    crud.create_time_entry(
        db,
        employee,
        schemas.TimeEntryCreate(
            entry_date=date(2024, 10, 1), hours=6, category="project_work", project_id=project.id, work_package_code="AP1"
        ),
    )
    response = admin_client.post(
        "/api/reports/monthly-timesheet",
        json={"userId": employee.id, "projectId": project.id, "year": 2024, "month": 10},
    )
    assert response.status_code == 200
    assert response.headers["content-disposition"] == disposition("Stundennachweis_Mustermann_2024-10.pdf")
    assert response.content.startswith(b"%PDF")
    assert any(holiday.holiday_date == date(2024, 10, 3) for holiday in crud.get_holidays_for_year(db, 2024, "DE-NW"))


def test_monthly_timesheet_requires_all_fields(admin_client, employee):
    response = admin_client.post("/api/reports/monthly-timesheet", json={"userId": employee.id, "year": 2024})
    assert response.status_code == 400
    assert response.json()["detail"] == "userId, projectId, year und month sind erforderlich"


def test_employee_cannot_report_on_colleagues(employee_client, admin, project):
    response = employee_client.post(
        "/api/reports/monthly-timesheet",
        json={"userId": admin.id, "projectId": project.id, "year": 2024, "month": 1},
    )
    assert response.status_code == 403


def test_fzul_form_pdf_is_archived(admin_client, company, db):
    response = admin_client.post("/api/fzul/pdf", json={"timesheet": _fzul_timesheet(), "federalState": "DE-NW"})
    assert response.status_code == 200
    assert response.headers["content-disposition"] == disposition("FZul_Mustermann_Max_2024.pdf")

    archived = db.query(models.FzulPdfArchive).one()
    assert archived.company_id == company.id
    assert archived.file_size == len(response.content)

    again = admin_client.post("/api/fzul/pdf", json={"timesheet": _fzul_timesheet(project_title="Neu")})
    assert again.status_code == 200
    db.expire_all()
    assert db.query(models.FzulPdfArchive).count() == 1
    assert db.query(models.FzulPdfArchive).one().project_short_name == "Neu"

    inline = admin_client.get("/api/fzul/pdf", params={"id": archived.id})
    assert inline.headers["content-disposition"] == disposition("FZul_Mustermann_Max_2024.pdf", "inline")
    assert inline.content.startswith(b"%PDF")


def test_fzul_form_pdf_validation(admin_client):
    assert admin_client.post("/api/fzul/pdf", json={}).json()["detail"] == "Timesheet-Daten fehlen"
    incomplete = admin_client.post("/api/fzul/pdf", json={"timesheet": _fzul_timesheet(daily_data={})})
    assert incomplete.json()["detail"] == "Unvollständige Timesheet-Daten"
    assert admin_client.get("/api/fzul/pdf").json()["detail"] == "PDF-ID erforderlich"
    assert admin_client.get("/api/fzul/pdf", params={"id": 9999}).status_code == 404


def _fzul_excel_payload():
    return {
        "empName": "Mustermann, Max",
        "year": 2024,
        "dayData": {"1": {"2": {"hours": 3, "absence": None}, "3": {"hours": 0, "absence": "U"}}},
        "settings": {"weekly_hours": 40, "annual_leave_days": 30},
    }


def test_fzul_excel_export(admin_client):
    response = admin_client.post("/api/export/fzul", json=_fzul_excel_payload())
    assert response.status_code == 200
    assert response.headers["content-disposition"] == disposition("FZul_Mustermann_Max_2024.xlsx")
    sheet = load_workbook(BytesIO(response.content)).worksheets[0]
    assert sheet["B11"].value is None
    assert sheet["C11"].value == 5
    assert sheet["D11"].value is None


def test_fzul_excel_export_with_required_template(admin_client, monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "fzul_template_path", tmp_path / "fehlt.xlsx")
    monkeypatch.setattr(settings, "fzul_template_required", True)
    response = admin_client.post("/api/export/fzul", json=_fzul_excel_payload())
    assert response.status_code == 404
    assert response.json()["detail"] == "Vorlage nicht gefunden"


def _zim_upload() -> bytes:
    workbook = Workbook()
    nav = workbook.active
    nav.title = "Nav"
    nav["I2"] = datetime(2024, 1, 1)
    nav["I3"] = datetime(2024, 12, 31)
    nav["C3"] = "Sensorplattform"
    nav["C6"] = "16KN123456"
    sheet = workbook.create_sheet("Muster J1")
    sheet["M11"] = "Mustermann, Max"
    sheet["A11"] = datetime(2024, 2, 1)
    sheet["E31"] = 7.5
    sheet["F34"] = "U"
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def test_zim_import(admin_client, db):
    files = {"file": ("projekt.xlsx", _zim_upload(), "application/octet-stream")}

    preview = admin_client.post("/api/import/zim", files=files, data={"previewOnly": "true"})
    assert preview.json()["preview"] is True
    assert preview.json()["project"]["fkz"] == "16KN123456"
    assert admin_client.get("/api/import/timesheets").json() == []

    imported = admin_client.post("/api/import/zim", files=files)
    assert imported.json()["imported"] == 1
    admin_client.post("/api/import/zim", files=files)

    timesheets = admin_client.get("/api/import/timesheets").json()
    assert len(timesheets) == 1
    assert timesheets[0]["employee_name"] == "Mustermann, Max"
    assert timesheets[0]["month"] == 2
    assert timesheets[0]["total_billable_hours"] == 7.5
    assert timesheets[0]["total_absence_days"] == 1
    assert timesheets[0]["daily_data"]["2"] == {"hours": 0.0, "absence": "U"}

    assert admin_client.delete("/api/import/timesheets").status_code == 400
    deleted = admin_client.delete("/api/import/timesheets", params={"employee_name": "Mustermann, Max"})
    assert deleted.json() == {"success": True, "deleted": 1}


def test_zim_import_reports_parse_errors(admin_client):
    workbook = Workbook()
    buffer = BytesIO()
    workbook.save(buffer)
    response = admin_client.post("/api/import/zim", files={"file": ("leer.xlsx", buffer.getvalue(), "application/octet-stream")})
    assert response.status_code == 400
    assert response.json()["errors"] == ["Nav-Sheet nicht gefunden oder Laufzeitbeginn fehlt"]


def test_holiday_sync(admin_client, employee):
    response = admin_client.post("/api/holidays/sync", json={"year": 2024, "state": "DE-BY"})
    body = response.json()
    assert body["year"] == 2024
    assert body["state"] == "DE-BY"
    assert body["count"] > 10

    holidays = admin_client.get("/api/holidays", params={"year": 2024, "state": "DE-BY"}).json()
    assert any(item["holiday_date"] == "2024-01-06" and item["state_code"] == "DE-BY" for item in holidays)

    admin_client.post("/api/auth/login", json={"email": employee.email, "password": "geheim123"})
    assert admin_client.post("/api/holidays/sync", json={"year": 2024}).status_code == 403


def test_prepared_fzul_timesheet_feeds_the_form(employee_client, employee, project, db):
    crud.create_time_entry(
        db, employee, schemas.TimeEntryCreate(entry_date=date(2024, 1, 2), hours=2, category="non_billable")
    )
    crud.create_time_entry(
        db,
        employee,
        schemas.TimeEntryCreate(entry_date=date(2024, 1, 2), hours=5, category="project_work", project_id=project.id),
    )
    crud.create_time_entry(
        db, employee, schemas.TimeEntryCreate(entry_date=date(2024, 1, 3), hours=8, category="vacation")
    )
    crud.create_time_entry(
        db, employee, schemas.TimeEntryCreate(entry_date=date(2024, 1, 4), hours=8, category="sick_leave")
    )

    response = employee_client.get(
        "/api/fzul/timesheet", params={"userId": employee.id, "year": 2024, "projectId": project.id}
    )
    assert response.status_code == 200
    timesheet = response.json()
    assert timesheet["employee_name"] == "Mustermann, Max"
    assert timesheet["project_fkz"] == "16KN123456"
    days = timesheet["daily_data"]
    assert len(days) == 366
    assert days["2024-01-01"]["type"] == "holiday"
    assert days["2024-01-02"] == {"type": "work", "free": 6.0, "holiday_name": None}
    assert days["2024-01-03"]["type"] == "vacation"
    assert days["2024-01-04"]["type"] == "sick"
    assert days["2024-01-06"]["type"] == "weekend"
    assert timesheet["yearly_calculation"]["sick_days"] == 1
    assert timesheet["yearly_calculation"]["holiday_count"] == 11
    assert timesheet["yearly_calculation"]["vacation_days_contract"] == 30

    pdf = employee_client.post("/api/fzul/pdf", json={"timesheet": timesheet})
    assert pdf.status_code == 200
    assert pdf.content.startswith(b"%PDF")


def test_prepared_fzul_timesheet_is_limited_to_own_data(employee_client, admin):
    assert employee_client.get("/api/fzul/timesheet", params={"userId": admin.id, "year": 2024}).status_code == 403
    assert employee_client.get("/api/fzul/timesheet", params={"year": 2024}).status_code == 400


def test_fzul_hour_sheet_counts_absence_days_from_hours(admin_client, employee, monkeypatch, db):
    for day in (date(2024, 2, 5), date(2024, 2, 6), date(2024, 2, 7)):
        crud.create_time_entry(db, employee, schemas.TimeEntryCreate(entry_date=day, hours=4, category="vacation"))
    crud.create_time_entry(
        db, employee, schemas.TimeEntryCreate(entry_date=date(2024, 3, 1), hours=4, category="sick_leave")
    )
    shares = []
    original = pdf_export.export_fzul_hour_sheet_pdf

    def capture(**kwargs):
        shares.append(kwargs["share"])
        return original(**kwargs)

    monkeypatch.setattr(pdf_export, "export_fzul_hour_sheet_pdf", capture)
    response = admin_client.post("/api/reports/fzul-stundennachweis", json={"userId": employee.id, "year": 2024})
    assert response.status_code == 200
    assert shares[0].vacation_days == 2
    assert shares[0].sick_days == 1


def test_export_filename_outside_latin1(admin_client):
    response = admin_client.post(
        "/api/fzul/pdf", json={"timesheet": _fzul_timesheet(employee_name="Łukasiewicz, Jan")}
    )
    assert response.status_code == 200
    assert response.headers["content-disposition"] == (
        "attachment; filename=\"FZul__ukasiewicz_Jan_2024.pdf\"; "
        "filename*=UTF-8''FZul_%C5%81ukasiewicz_Jan_2024.pdf"
    )


def test_export_filename_with_separators_is_quoted(admin_client):
    response = admin_client.post(
        "/api/export/fzul", json={**_fzul_excel_payload(), "empName": "Müller; Jörg"}
    )
    assert response.status_code == 200
    assert response.headers["content-disposition"] == (
        "attachment; filename=\"FZul_Muller; Jorg_X_2024.xlsx\"; "
        "filename*=UTF-8''FZul_M%C3%BCller%3B%20J%C3%B6rg_X_2024.xlsx"
    )


def test_fzul_archive_stays_within_the_company(admin_client, company, db):
    owner = crud.create_user(db, email="fremd@example.com", password="geheim123", name="Fremd")
    other = crud.create_company(db, schemas.CompanyCreate(name="Fremd AG"), owner)

    foreign_write = admin_client.post("/api/fzul/pdf", json={"timesheet": _fzul_timesheet(), "companyId": other.id})
    assert foreign_write.status_code == 403
    assert db.query(models.FzulPdfArchive).count() == 0

    own = admin_client.post("/api/fzul/pdf", json={"timesheet": _fzul_timesheet(), "companyId": company.id})
    assert own.status_code == 200
    assert db.query(models.FzulPdfArchive).one().company_id == company.id

    foreign = crud.upsert_fzul_pdf(
        db,
        company_id=other.id,
        employee_name="Fremd, Fritz",
        year=2024,
        pdf_data=b"%PDF-1.4",
        filename="FZul_Fremd_Fritz_2024.pdf",
        project_short_name=None,
    )
    orphan = crud.upsert_fzul_pdf(
        db,
        company_id=None,
        employee_name="Ohne, Firma",
        year=2024,
        pdf_data=b"%PDF-1.4",
        filename="FZul_Ohne_Firma_2024.pdf",
        project_short_name=None,
    )
    assert admin_client.get("/api/fzul/pdf", params={"id": foreign.id}).status_code == 404
    assert admin_client.get("/api/fzul/pdf", params={"id": orphan.id}).status_code == 404
