from __future__ import annotations

import logging
import unicodedata
from calendar import monthrange
from datetime import date
from io import BytesIO
from typing import Dict, List, Optional
from urllib.parse import quote

from fastapi import Depends, FastAPI, File, Form, HTTPException, Query, Request, UploadFile, status
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.middleware.sessions import SessionMiddleware

from . import __version__ as APP_VERSION
from . import (
    crud,
    database,
    db_migrations,
    excel_export,
    holiday_calculator,
    importers,
    models,
    payment_requests,
    pdf_export,
    schemas,
    services,
    zim_export,
)
from .config import settings
from .security import verify_password

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

models.Base.metadata.create_all(bind=database.engine)

app = FastAPI(
    title=settings.app_name,
    description="Zeiterfassung und Nachweise für FuE-Förderung (FZul, ZIM)",
    version=APP_VERSION,
)

app.add_middleware(SessionMiddleware, secret_key=settings.session_secret)

PDF_MEDIA_TYPE = "application/pdf"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

TIME_ENTRY_ERRORS = {
    "MISSING_FIELDS": "Missing required fields",
    "INVALID_HOURS": "Stunden müssen zwischen 0 und 24 liegen",
    "INVALID_CATEGORY": "Ungültige Kategorie",
    "PROJECT_REQUIRED": "Für diese Kategorie ist ein Projekt erforderlich",
    "DUPLICATE_TIME_ENTRY": "Ein Eintrag für dieses Datum, Projekt und Arbeitspaket existiert bereits",
}

PAYMENT_REQUEST_STATUSES = (
    models.PaymentRequestStatus.DRAFT,
    models.PaymentRequestStatus.SUBMITTED,
    models.PaymentRequestStatus.APPROVED,
    models.PaymentRequestStatus.PAID,
    models.PaymentRequestStatus.REJECTED,
)


@app.on_event("startup")
def apply_migrations() -> None:
    db_migrations.run(settings.sqlite_path)


def get_logged_in_user(request: Request, db: Session) -> Optional[models.UserProfile]:
    user_id = request.session.get("user_id")
    if not user_id:
        return None
    user = crud.get_user(db, user_id)
    if user is None or not user.is_active:
        return None
    return user


def _require_user(request: Request, db: Session) -> models.UserProfile:
    user = get_logged_in_user(request, db)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Nicht eingeloggt.")
    return user


def _require_company_user(request: Request, db: Session) -> models.UserProfile:
    user = _require_user(request, db)
    if not user.company_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Keine Firma zugeordnet")
    return user


def _require_manager(request: Request, db: Session, detail: str = "Keine Berechtigung") -> models.UserProfile:
    user = _require_company_user(request, db)
    if not user.can_manage_employees:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
    return user


def _require_admin(request: Request, db: Session, detail: str = "Keine Berechtigung") -> models.UserProfile:
    user = _require_company_user(request, db)
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
    return user


def _company_project(db: Session, user: models.UserProfile, project_id: Optional[int]) -> models.Project:
    project = crud.get_project(db, project_id) if project_id else None
    if not project or project.company_id != user.company_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Projekt nicht gefunden")
    return project


def _company_employee(db: Session, user: models.UserProfile, employee_id: Optional[int]) -> models.UserProfile:
    employee = crud.get_employee_in_company(db, user.company_id, employee_id) if employee_id else None
    if not employee:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Mitarbeiter nicht gefunden")
    return employee


def _employee_target(
    request: Request, db: Session, payload: schemas.EmployeeAction, *, admin_only: bool, self_detail: str
) -> tuple[models.UserProfile, models.UserProfile]:
    if admin_only:
        user = _require_admin(request, db, "Keine Berechtigung. Nur Firmen-Administratoren.")
    else:
        user = _require_manager(request, db)
    if not payload.employee_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Mitarbeiter-ID fehlt")
    employee = _company_employee(db, user, payload.employee_id)
    if employee.id == user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=self_detail)
    return user, employee


def _ascii_filename(filename: str) -> str:
    decomposed = unicodedata.normalize("NFKD", filename)
    plain = "".join(char for char in decomposed if not unicodedata.combining(char))
    return "".join(char if char.isascii() and char.isprintable() and char not in '"\\' else "_" for char in plain)


def _attachment(buffer, media_type: str, filename: str, *, inline: bool = False) -> StreamingResponse:
    # Headers go out as latin-1; the UTF-8 name travels in filename*.
    disposition = "inline" if inline else "attachment"
    return StreamingResponse(
        buffer,
        media_type=media_type,
        headers={
            "Content-Disposition": (
                f"{disposition}; filename=\"{_ascii_filename(filename)}\"; "
                f"filename*=UTF-8''{quote(filename, safe='')}"
            )
        },
    )


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


# Accounts


@app.post("/api/auth/login")
def login(payload: schemas.LoginRequest, request: Request, db: Session = Depends(database.get_db)):
    if not payload.email or not payload.password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email und Passwort erforderlich")
    user = crud.get_user_by_email(db, payload.email)
    if not user or not verify_password(payload.password, user.password_hash):
        logger.info("Fehlgeschlagener Login für %s", payload.email)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Ungültige Anmeldedaten")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Benutzerkonto ist deaktiviert")
    request.session["user_id"] = user.id
    return {
        "success": True,
        "user": schemas.Employee.model_validate(user).model_dump(mode="json"),
    }


@app.post("/api/auth/logout")
def logout(request: Request):
    request.session.clear()
    return {"success": True}


@app.post("/api/auth/register", status_code=status.HTTP_201_CREATED)
def register(payload: schemas.RegisterRequest, request: Request, db: Session = Depends(database.get_db)):
    try:
        user = crud.create_user(
            db,
            email=payload.email,
            password=payload.password,
            name=payload.name,
            first_name=payload.first_name,
            last_name=payload.last_name,
        )
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail="Ein Benutzer mit dieser E-Mail existiert bereits"
        ) from exc
    request.session["user_id"] = user.id
    return {"success": True, "user_id": user.id}


@app.post("/api/company/create")
def create_company(payload: schemas.CompanyCreate, request: Request, db: Session = Depends(database.get_db)):
    user = _require_user(request, db)
    if payload.vat_id:
        existing = crud.get_company_by_vat_id(db, payload.vat_id)
        if existing:
            return JSONResponse(
                status_code=status.HTTP_409_CONFLICT,
                content={
                    "error": "Firma bereits registriert",
                    "details": (
                        f'Eine Firma mit der USt-ID "{payload.vat_id}" ist bereits registriert ({existing.name}).'
                    ),
                },
            )
    existing = crud.get_company_by_name(db, payload.name)
    if existing:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={
                "error": "Firma bereits registriert",
                "details": (
                    f'Eine Firma mit dem Namen "{payload.name}" ist bereits registriert '
                    f"(USt-ID: {existing.vat_id or 'nicht angegeben'})."
                ),
            },
        )
    company = crud.create_company(db, payload, user)
    logger.info("Firma %s angelegt von Benutzer %s", company.id, user.id)
    return {"success": True, "company_id": company.id, "message": "Firma erfolgreich angelegt!"}


@app.get("/api/employees", response_model=List[schemas.Employee])
def list_employees(request: Request, db: Session = Depends(database.get_db)):
    user = _require_company_user(request, db)
    return crud.get_employees(db, user.company_id)


@app.post("/api/employees/create", status_code=status.HTTP_201_CREATED)
def create_employee(payload: schemas.EmployeeCreate, request: Request, db: Session = Depends(database.get_db)):
    user = _require_manager(
        request, db, "Keine Berechtigung. Nur Admins und Manager können Mitarbeiter erstellen."
    )
    if not payload.name or not payload.email or not payload.password or not payload.role:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Fehlende Pflichtfelder")
    if len(payload.password) < 6:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Passwort muss mindestens 6 Zeichen lang sein"
        )
    if payload.role not in models.Role.ALL:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Ungültige Rolle")
    try:
        employee = crud.create_employee(db, user.company_id, payload)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail="Ein Mitarbeiter mit dieser E-Mail existiert bereits"
        ) from exc
    logger.info("Mitarbeiter %s in Firma %s angelegt", employee.id, user.company_id)
    return {
        "success": True,
        "message": f"{employee.name} wurde angelegt",
        "employee": schemas.Employee.model_validate(employee).model_dump(mode="json"),
    }


@app.post("/api/employees/deactivate")
def deactivate_employee(payload: schemas.EmployeeAction, request: Request, db: Session = Depends(database.get_db)):
    user, employee = _employee_target(
        request, db, payload, admin_only=False, self_detail="Sie können sich nicht selbst deaktivieren"
    )
    crud.deactivate_employee(db, employee, user)
    return {"success": True, "message": "Mitarbeiter wurde deaktiviert"}


@app.post("/api/employees/activate")
def activate_employee(payload: schemas.EmployeeAction, request: Request, db: Session = Depends(database.get_db)):
    _, employee = _employee_target(
        request, db, payload, admin_only=True, self_detail="Sie können sich nicht selbst aktivieren"
    )
    crud.activate_employee(db, employee)
    return {"success": True, "message": f"{employee.name} wurde aktiviert"}


@app.post("/api/employees/anonymize")
def anonymize_employee(payload: schemas.EmployeeAction, request: Request, db: Session = Depends(database.get_db)):
    _, employee = _employee_target(
        request, db, payload, admin_only=True, self_detail="Sie können sich nicht selbst anonymisieren"
    )
    original_name = employee.name
    crud.anonymize_employee(db, employee)
    logger.info("Mitarbeiter %s anonymisiert", employee.id)
    return {
        "success": True,
        "message": (
            f"{original_name} wurde DSGVO-konform anonymisiert. Zeiterfassungsdaten bleiben erhalten."
        ),
    }


@app.post("/api/employees/delete")
def delete_employee(payload: schemas.EmployeeDelete, request: Request, db: Session = Depends(database.get_db)):
    _, employee = _employee_target(
        request, db, payload, admin_only=True, self_detail="Sie können sich nicht selbst löschen"
    )
    blockers = crud.employee_delete_blockers(db, employee)
    if blockers["total_assignments"] or blockers["time_entries"]:
        if blockers["active_projects"]:
            suggestion = "Bitte zuerst Mitarbeiter von aktiven Projekten entfernen oder Projekte abschließen."
        else:
            suggestion = 'Verwenden Sie stattdessen "Anonymisieren" um DSGVO-konform zu löschen.'
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": "Mitarbeiter kann nicht gelöscht werden",
                "canDelete": False,
                "activeProjects": blockers["active_projects"],
                "totalAssignments": blockers["total_assignments"],
                "timeEntries": blockers["time_entries"],
                "suggestion": suggestion,
            },
        )
    if payload.check_only:
        return {"canDelete": True, "message": "Mitarbeiter kann sicher gelöscht werden"}
    name = employee.name
    crud.delete_employee(db, employee)
    logger.info("Mitarbeiter %s gelöscht", payload.employee_id)
    return {"success": True, "message": f"{name} wurde erfolgreich gelöscht"}


@app.post("/api/employees/{employee_id}/salaries", response_model=schemas.Salary)
def add_salary(
    employee_id: int, payload: schemas.SalaryCreate, request: Request, db: Session = Depends(database.get_db)
):
    user = _require_manager(request, db)
    employee = _company_employee(db, user, employee_id)
    return crud.upsert_salary(db, employee, payload)


# Projects


@app.get("/api/projects", response_model=List[schemas.Project])
def list_projects(request: Request, db: Session = Depends(database.get_db)):
    user = _require_company_user(request, db)
    return crud.get_projects(db, user.company_id)


@app.post("/api/projects", response_model=schemas.Project, status_code=status.HTTP_201_CREATED)
def create_project(payload: schemas.ProjectCreate, request: Request, db: Session = Depends(database.get_db)):
    user = _require_manager(request, db)
    project = crud.create_project(db, user.company_id, payload)
    logger.info("Projekt %s angelegt (%s)", project.id, project.funding_format)
    return project


@app.post("/api/projects/{project_id}/assignments", response_model=schemas.Assignment)
def assign_employee(
    project_id: int, payload: schemas.AssignmentCreate, request: Request, db: Session = Depends(database.get_db)
):
    user = _require_manager(request, db)
    project = _company_project(db, user, project_id)
    _company_employee(db, user, payload.user_profile_id)
    return crud.create_assignment(db, project, payload)


@app.get("/api/projects/{project_id}/work-packages", response_model=List[schemas.WorkPackage])
def list_work_packages(project_id: int, request: Request, db: Session = Depends(database.get_db)):
    user = _require_company_user(request, db)
    project = _company_project(db, user, project_id)
    return crud.get_work_packages(db, project.id)


@app.post(
    "/api/projects/{project_id}/work-packages",
    response_model=schemas.WorkPackage,
    status_code=status.HTTP_201_CREATED,
)
def create_work_package(
    project_id: int, payload: schemas.WorkPackageCreate, request: Request, db: Session = Depends(database.get_db)
):
    user = _require_manager(request, db)
    project = _company_project(db, user, project_id)
    try:
        return crud.create_work_package(db, project, payload)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail="Arbeitspaket-Code existiert bereits"
        ) from exc


@app.post("/api/work-packages/import")
async def import_work_packages(
    request: Request,
    file: Optional[UploadFile] = File(None),
    projectId: Optional[int] = Form(None),
    previewOnly: bool = Form(False),
    db: Session = Depends(database.get_db),
):
    user = _require_manager(request, db)
    if file is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Keine Datei hochgeladen")
    if not projectId:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Projekt-ID fehlt")
    content = await file.read()
    try:
        packages = importers.parse_work_packages(content)
    except importers.ImportFormatError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if not packages:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Keine Arbeitspakete in der Datei gefunden"
        )
    if previewOnly:
        return {
            "success": True,
            "preview": True,
            "workPackages": [package.model_dump(mode="json") for package in packages],
            "count": len(packages),
        }

    project = _company_project(db, user, projectId)
    existing_codes = {package.code for package in crud.get_work_packages(db, project.id)}
    new_packages = [package for package in packages if package.code not in existing_codes]
    skipped = len(packages) - len(new_packages)
    if not new_packages:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Alle Arbeitspakete existieren bereits", "skipped": skipped},
        )
    created = crud.add_work_packages(db, project, new_packages)
    logger.info("%d Arbeitspakete für Projekt %s importiert, %d übersprungen", len(created), project.id, skipped)
    return {
        "success": True,
        "imported": len(created),
        "skipped": skipped,
        "workPackages": [schemas.WorkPackage.model_validate(package).model_dump(mode="json") for package in created],
    }


# Time entries


def _visible_entries(
    db: Session,
    user: models.UserProfile,
    start_date: Optional[date],
    end_date: Optional[date],
    user_profile_id: Optional[int],
) -> List[models.TimeEntry]:
    if not user.can_manage_employees:
        user_profile_id = user.id
    return crud.get_time_entries(
        db,
        user.company_id,
        start_date=start_date,
        end_date=end_date,
        user_profile_id=user_profile_id,
    )


@app.get("/api/time-entries", response_model=List[schemas.TimeEntry])
def list_time_entries(
    request: Request,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    user_profile_id: Optional[int] = None,
    db: Session = Depends(database.get_db),
):
    user = _require_company_user(request, db)
    return _visible_entries(db, user, start_date, end_date, user_profile_id)


@app.get("/api/time-entries/summary", response_model=schemas.TimeEntrySummary)
def time_entry_summary(
    request: Request,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    user_profile_id: Optional[int] = None,
    db: Session = Depends(database.get_db),
):
    user = _require_company_user(request, db)
    entries = _visible_entries(db, user, start_date, end_date, user_profile_id)
    return services.summarize_time_entries(entries)


@app.post("/api/time-entries", status_code=status.HTTP_201_CREATED)
def create_time_entry(payload: schemas.TimeEntryCreate, request: Request, db: Session = Depends(database.get_db)):
    user = _require_company_user(request, db)
    if payload.project_id:
        _company_project(db, user, payload.project_id)
    try:
        entry = crud.create_time_entry(db, user, payload)
    except ValueError as exc:
        detail = TIME_ENTRY_ERRORS.get(str(exc), str(exc))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail) from exc
    return {
        "success": True,
        "message": "Zeiteintrag erfolgreich erstellt",
        "entry": schemas.TimeEntry.model_validate(entry).model_dump(mode="json"),
    }


@app.delete("/api/time-entries/{entry_id}")
def delete_time_entry(entry_id: int, request: Request, db: Session = Depends(database.get_db)):
    user = _require_company_user(request, db)
    entry = crud.get_time_entry(db, entry_id)
    if not entry or entry.company_id != user.company_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Zeiteintrag nicht gefunden")
    if entry.user_profile_id != user.id and not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Keine Berechtigung")
    crud.delete_time_entry(db, entry)
    return {"success": True, "message": "Zeiteintrag gelöscht"}


# Payment requests


def _company_payment_request(
    db: Session, user: models.UserProfile, request_id: Optional[int]
) -> models.PaymentRequest:
    payment_request = crud.get_payment_request(db, request_id) if request_id else None
    if not payment_request or payment_request.project.company_id != user.company_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Zahlungsanforderung nicht gefunden")
    return payment_request


@app.get("/api/payment-requests")
def get_payment_requests(
    request: Request,
    id: Optional[int] = None,
    project_id: Optional[int] = None,
    db: Session = Depends(database.get_db),
):
    user = _require_company_user(request, db)
    if id:
        payment_request = _company_payment_request(db, user, id)
        project = payment_request.project
        detail = schemas.PaymentRequestDetail.model_validate(payment_request).model_copy(
            update={
                "project_name": project.name,
                "funding_reference": project.funding_reference,
                "funding_rate": project.funding_rate,
                "overhead_rate": project.overhead_rate,
            }
        )
        return detail.model_dump(mode="json")
    if project_id:
        project = _company_project(db, user, project_id)
        return [
            schemas.PaymentRequest.model_validate(item).model_dump(mode="json")
            for item in crud.get_payment_requests(db, project.id)
        ]
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST, detail="project_id oder id Parameter erforderlich"
    )


@app.post("/api/payment-requests")
def payment_request_action(
    payload: schemas.PaymentRequestAction, request: Request, db: Session = Depends(database.get_db)
):
    user = _require_manager(request, db)
    if payload.action not in ("calculate", "create"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unbekannte Aktion")
    if not payload.project_id or not payload.period_start or not payload.period_end:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="project_id, period_start und period_end erforderlich"
        )
    project = _company_project(db, user, payload.project_id)
    try:
        calculation = payment_requests.calculate(db, project, payload.period_start, payload.period_end)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Ungültiger Zeitraum") from exc
    if payload.action == "calculate":
        return calculation.as_dict()

    stored = crud.create_payment_request(
        db,
        project,
        period_start=calculation.period_start,
        period_end=calculation.period_end,
        totals=calculation.totals,
        items=calculation.items,
        notes=payload.notes,
        created_by=user.id,
    )
    logger.info("Zahlungsanforderung %s Nr. %s für Projekt %s gespeichert", stored.id, stored.request_number, project.id)
    return {"id": stored.id, "request_number": stored.request_number, "status": stored.status}


@app.patch("/api/payment-requests")
def update_payment_request(
    payload: schemas.PaymentRequestUpdate, request: Request, db: Session = Depends(database.get_db)
):
    user = _require_manager(request, db)
    if not payload.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="ID erforderlich")
    payment_request = _company_payment_request(db, user, payload.id)
    changes = payload.model_dump(exclude_unset=True, exclude={"id"})
    if "status" in changes and changes["status"] not in PAYMENT_REQUEST_STATUSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Ungültiger Status")
    updated = crud.update_payment_request(db, payment_request, changes)
    return schemas.PaymentRequest.model_validate(updated).model_dump(mode="json")


@app.delete("/api/payment-requests")
def delete_payment_request(request: Request, id: Optional[int] = None, db: Session = Depends(database.get_db)):
    user = _require_manager(request, db)
    if not id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="ID erforderlich")
    payment_request = _company_payment_request(db, user, id)
    try:
        crud.delete_payment_request(db, payment_request)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Nur Entwürfe können gelöscht werden"
        ) from exc
    return {"success": True, "message": "Zahlungsanforderung gelöscht"}


@app.post("/api/payment-requests/export")
def export_payment_request(
    payload: schemas.PaymentRequestExport, request: Request, db: Session = Depends(database.get_db)
):
    user = _require_admin(
        request,
        db,
        "Keine Berechtigung. Nur Firmen-Administratoren können Zahlungsanforderungen exportieren.",
    )
    if payload.payment_request_id:
        payment_request = crud.get_payment_request(db, payload.payment_request_id)
        if not payment_request:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Zahlungsanforderung nicht gefunden")
        project = payment_request.project
        if project.company_id != user.company_id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Keine Berechtigung für dieses Projekt")
        calculation = payment_requests.from_stored(payment_request)
    elif payload.project_id and payload.period_start and payload.period_end:
        project = crud.get_project(db, payload.project_id)
        if not project:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Projekt nicht gefunden")
        if project.company_id != user.company_id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Keine Berechtigung für dieses Projekt")
        try:
            calculation = payment_requests.calculate(
                db, project, payload.period_start, payload.period_end, active_only=True
            )
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Ungültiger Zeitraum") from exc
    else:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Entweder paymentRequestId oder projectId + periodStart + periodEnd erforderlich",
        )

    buffer = zim_export.export_payment_request_pdf(user.company.name, project, calculation)
    filename = zim_export.payment_request_filename(project, calculation.request_number)
    logger.info(
        "Zahlungsanforderung exportiert: Projekt %s, %s bis %s",
        project.id,
        calculation.period_start,
        calculation.period_end,
    )
    return _attachment(buffer, PDF_MEDIA_TYPE, filename)


# Reports


def _employee_names(employee: models.UserProfile) -> tuple[str, str]:
    if employee.last_name:
        return employee.last_name, employee.first_name or ""
    parts = (employee.name or "").split()
    if len(parts) > 1:
        return parts[-1], " ".join(parts[:-1])
    return employee.name or "", ""


@app.post("/api/reports/fzul-stundennachweis")
def fzul_hour_sheet(payload: schemas.FzulHourSheetRequest, request: Request, db: Session = Depends(database.get_db)):
    user = _require_company_user(request, db)
    if not payload.user_id or not payload.year:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="userId und year sind erforderlich")
    employee = _company_employee(db, user, payload.user_id)
    if not user.can_manage_employees and employee.id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Keine Berechtigung")
    project = _company_project(db, user, payload.project_id) if payload.project_id else None

    year = payload.year
    entries = crud.get_user_entries_in_range(db, employee.id, date(year, 1, 1), date(year, 12, 31))
    hours_by_day: Dict[date, float] = {}
    vacation_hours = 0.0
    sick_hours = 0.0
    for entry in entries:
        if entry.category == models.TimeEntryCategory.PROJECT_WORK:
            if project is not None and entry.project_id != project.id:
                continue
            hours_by_day[entry.entry_date] = hours_by_day.get(entry.entry_date, 0.0) + float(entry.hours or 0)
        elif entry.category == models.TimeEntryCategory.VACATION:
            vacation_hours += float(entry.hours or 0)
        elif entry.category == models.TimeEntryCategory.SICK_LEAVE:
            sick_hours += float(entry.hours or 0)

    share = services.calculate_fzul_share(
        weekly_hours=float(employee.weekly_hours or settings.default_weekly_hours),
        vacation_days=vacation_hours / services.HOURS_PER_DAY,
        sick_days=sick_hours / services.HOURS_PER_DAY,
        total_hours=sum(hours_by_day.values()),
        months=payload.monate_fue,
    )
    state = user.company.state_code if user.company else settings.default_federal_state
    last_name, first_name = _employee_names(employee)
    buffer = pdf_export.export_fzul_hour_sheet_pdf(
        last_name=last_name,
        first_name=first_name,
        year=year,
        state=state,
        project_title=payload.kurzbezeichnung_vorhaben or (project.name if project else ""),
        project_id_label=payload.vorhaben_id or ((project.funding_reference or "") if project else ""),
        activity=payload.kurzbezeichnung_fue_taetigkeit,
        hours_by_day=hours_by_day,
        holiday_labels=holiday_calculator.holiday_labels(year, state),
        share=share,
    )
    logger.info("FZul-Stundennachweis erstellt: Mitarbeiter %s, Jahr %s", employee.id, year)
    return _attachment(buffer, PDF_MEDIA_TYPE, f"FZul_Stundennachweis_{last_name}_{year}.pdf")


@app.post("/api/reports/monthly-timesheet")
def monthly_timesheet(
    payload: schemas.MonthlyTimesheetRequest, request: Request, db: Session = Depends(database.get_db)
):
    user = _require_company_user(request, db)
    if not payload.user_id or not payload.project_id or not payload.year or not payload.month:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="userId, projectId, year und month sind erforderlich"
        )
    employee = _company_employee(db, user, payload.user_id)
    if not user.can_manage_employees and employee.id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Keine Berechtigung")
    project = _company_project(db, user, payload.project_id)

    year, month = payload.year, payload.month
    state = user.company.state_code if user.company else settings.default_federal_state
    holiday_dates = holiday_calculator.holiday_map_for(db, year, state)
    entries = crud.get_user_entries_in_range(
        db, employee.id, date(year, month, 1), date(year, month, monthrange(year, month)[1])
    )
    sheet = services.build_monthly_timesheet(year, month, project.id, entries, holiday_dates.keys())
    work_package_names = {package.code: package.description for package in crud.get_work_packages(db, project.id)}
    buffer = zim_export.export_monthly_timesheet_pdf(
        company_name=user.company.name,
        project=project,
        employee=employee,
        sheet=sheet,
        work_package_names=work_package_names,
    )
    logger.info("ZIM-Stundennachweis erstellt: Mitarbeiter %s, %04d-%02d", employee.id, year, month)
    return _attachment(buffer, PDF_MEDIA_TYPE, zim_export.monthly_timesheet_filename(employee, year, month))


@app.get("/api/fzul/timesheet", response_model=schemas.FzulTimesheet)
def fzul_timesheet(
    request: Request,
    user_id: Optional[int] = Query(default=None, alias="userId"),
    year: Optional[int] = None,
    project_id: Optional[int] = Query(default=None, alias="projectId"),
    db: Session = Depends(database.get_db),
):
    user = _require_company_user(request, db)
    if not user_id or not year:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="userId und year sind erforderlich")
    employee = _company_employee(db, user, user_id)
    if not user.can_manage_employees and employee.id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Keine Berechtigung")
    project = _company_project(db, user, project_id) if project_id else None

    state = user.company.state_code if user.company else settings.default_federal_state
    labels = holiday_calculator.holiday_map_for(db, year, state)
    entries = crud.get_user_entries_in_range(db, employee.id, date(year, 1, 1), date(year, 12, 31))
    weekly_hours = float(employee.weekly_hours or settings.default_weekly_hours)
    daily_data = services.build_fzul_timesheet_days(year, entries, weekly_hours, labels)

    kinds = [day["type"] for day in daily_data.values()]
    last_name, first_name = _employee_names(employee)
    return schemas.FzulTimesheet(
        employee_name=f"{last_name}, {first_name}" if first_name else last_name,
        year=year,
        daily_data=daily_data,
        yearly_calculation=schemas.FzulYearlyCalculation(
            weekly_hours=weekly_hours,
            vacation_days_contract=float(employee.annual_leave_days or 30),
            sick_days=kinds.count("sick"),
            special_leave_days=kinds.count("special_leave"),
            holiday_count=kinds.count("holiday"),
        ),
        project_title=project.name if project else None,
        project_fkz=project.funding_reference if project else None,
    )


@app.post("/api/fzul/pdf")
def fzul_form_pdf(payload: schemas.FzulPdfRequest, request: Request, db: Session = Depends(database.get_db)):
    user = _require_company_user(request, db)
    if payload.company_id and payload.company_id != user.company_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Keine Berechtigung für diese Firma")
    timesheet = payload.timesheet
    if timesheet is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Timesheet-Daten fehlen")
    if not timesheet.employee_name or not timesheet.year or not timesheet.daily_data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unvollständige Timesheet-Daten")

    labels = holiday_calculator.holiday_labels(
        timesheet.year, payload.federal_state, variant=holiday_calculator.VARIANT_FORM
    )
    buffer = pdf_export.export_fzul_form_pdf(timesheet, payload.federal_state, labels)
    filename = pdf_export.fzul_form_filename(timesheet.employee_name, timesheet.year)
    logger.info("FZul-PDF erstellt: %s, Jahr %s", timesheet.employee_name, timesheet.year)

    try:
        crud.upsert_fzul_pdf(
            db,
            company_id=user.company_id,
            employee_name=timesheet.employee_name,
            year=timesheet.year,
            pdf_data=buffer.getvalue(),
            filename=filename,
            project_short_name=timesheet.project_title,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("FZul-PDF konnte nicht archiviert werden", exc_info=exc)
    buffer.seek(0)
    return _attachment(buffer, PDF_MEDIA_TYPE, filename)


@app.get("/api/fzul/pdf")
def fzul_archived_pdf(request: Request, id: Optional[int] = None, db: Session = Depends(database.get_db)):
    user = _require_company_user(request, db)
    if not id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="PDF-ID erforderlich")
    archived = crud.get_fzul_pdf(db, id)
    if not archived or archived.company_id != user.company_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="PDF nicht gefunden")
    return _attachment(BytesIO(archived.pdf_data), PDF_MEDIA_TYPE, archived.filename, inline=True)


@app.post("/api/export/fzul")
def export_fzul_excel(payload: schemas.FzulExcelRequest, request: Request, db: Session = Depends(database.get_db)):
    _require_user(request, db)
    holiday_dates = payload.holidays or holiday_calculator.fallback_holiday_dates(payload.year)
    try:
        buffer = excel_export.export_fzul_workbook(
            employee_name=payload.emp_name,
            year=payload.year,
            day_data=payload.day_data,
            weekly_hours=payload.settings.weekly_hours,
            annual_leave_days=payload.settings.annual_leave_days,
            holiday_dates=holiday_dates,
            template_path=settings.fzul_template_path,
            require_template=settings.fzul_template_required,
        )
    except excel_export.TemplateNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Vorlage nicht gefunden") from exc
    last_name, first_name = services.split_employee_name(payload.emp_name)
    logger.info("FZul-Excel erstellt: %s, Jahr %s", payload.emp_name, payload.year)
    return _attachment(buffer, XLSX_MEDIA_TYPE, f"FZul_{last_name}_{first_name or 'X'}_{payload.year}.xlsx")


# Imports


@app.post("/api/import/zim")
async def import_zim(
    request: Request,
    file: Optional[UploadFile] = File(None),
    previewOnly: bool = Form(False),
    db: Session = Depends(database.get_db),
):
    user = _require_manager(request, db)
    if file is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Keine Datei hochgeladen")
    content = await file.read()
    try:
        result = importers.parse_zim_workbook(content, file.filename or "")
    except importers.ImportFormatError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if not result.success:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=result.as_dict())
    response = result.as_dict()
    if previewOnly:
        response["preview"] = True
        return response

    project = result.project
    imported = 0
    for employee in result.employees:
        crud.upsert_import_employee(
            db,
            user.company_id,
            employee.name,
            weekly_hours=settings.default_weekly_hours,
            annual_leave_days=services.DEFAULT_VACATION_DAYS,
        )
        for month in employee.months:
            crud.upsert_imported_timesheet(
                db,
                user.company_id,
                employee_name=employee.name,
                project_name=project.name,
                year=month.calendar_year,
                month=month.month,
                daily_data=importers.timesheet_daily_data(month),
                total_billable_hours=month.total_hours,
                total_absence_days=month.absence_days,
                funding_reference=project.fkz or None,
                original_filename=file.filename,
            )
            imported += 1
    db.commit()
    logger.info("ZIM-Import gespeichert: %d Monatsblätter für %s", imported, project.name)
    response["imported"] = imported
    return response


@app.get("/api/import/timesheets", response_model=List[schemas.ImportedTimesheet])
def list_imported_timesheets(
    request: Request,
    employee_name: Optional[str] = None,
    year: Optional[int] = None,
    db: Session = Depends(database.get_db),
):
    user = _require_company_user(request, db)
    return crud.get_imported_timesheets(db, user.company_id, employee_name=employee_name, year=year)


@app.delete("/api/import/timesheets")
def delete_imported_timesheets(
    request: Request,
    id: Optional[int] = None,
    project_name: Optional[str] = None,
    employee_name: Optional[str] = None,
    db: Session = Depends(database.get_db),
):
    user = _require_manager(request, db)
    if not id and not project_name and not employee_name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="id, project_name oder employee_name erforderlich"
        )
    deleted = crud.delete_imported_timesheets(
        db, user.company_id, timesheet_id=id, project_name=project_name, employee_name=employee_name
    )
    return {"success": True, "deleted": deleted}


# Holidays


@app.get("/api/holidays", response_model=List[schemas.Holiday])
def list_holidays(
    request: Request, year: Optional[int] = None, state: Optional[str] = None, db: Session = Depends(database.get_db)
):
    user = _require_user(request, db)
    year = year or date.today().year
    if not state:
        state = user.company.state_code if user.company else settings.default_federal_state
    holiday_calculator.holiday_map_for(db, year, state)
    return crud.get_holidays_for_year(db, year, f"DE-{holiday_calculator.normalize_state(state)}")


@app.post("/api/holidays/sync")
def sync_holidays(payload: schemas.HolidaySyncRequest, request: Request, db: Session = Depends(database.get_db)):
    user = _require_admin(request, db)
    state = payload.state or (user.company.state_code if user.company else settings.default_federal_state)
    stored = holiday_calculator.ensure_holidays(db, payload.year, state)
    return {"year": payload.year, "state": state, "count": len(stored)}
