"""Calculation of ZIM payment requests (Zahlungsanforderungen)."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from . import crud, models, schemas, services
from .config import settings

logger = logging.getLogger(__name__)


@dataclass
class Calculation:
    items: List[schemas.PaymentRequestItem]
    totals: Dict[str, float]
    warnings: List[str]
    period_start: date
    period_end: date
    months: List[str] = field(default_factory=list)
    request_number: str = "Entwurf"

    def as_dict(self) -> Dict[str, object]:
        return {
            "items": [item.model_dump() for item in self.items],
            "totals": self.totals,
            "warnings": self.warnings,
            "period": {
                "start": self.period_start.isoformat(),
                "end": self.period_end.isoformat(),
                "months": self.months,
            },
        }


def calculate(
    db: Session,
    project: models.Project,
    period_start: date,
    period_end: date,
    *,
    active_only: bool = False,
) -> Calculation:
    """Aggregate project hours per employee and month and price them.

    The hourly rate is the employee's salary rate of the year the period
    starts in.
    """
    if period_end < period_start:
        raise ValueError("INVALID_PERIOD")

    user_ids: Optional[List[int]] = None
    if active_only:
        user_ids = [employee.id for employee in crud.get_active_employees(db, project.company_id)]

    entries = crud.get_project_work_entries(db, project.id, period_start, period_end, user_ids)
    hours_by_user: Dict[int, Dict[str, float]] = defaultdict(lambda: defaultdict(float))
    for entry in entries:
        hours_by_user[entry.user_profile_id][services.month_key(entry.entry_date)] += float(entry.hours or 0)

    rate_year = period_start.year
    rates = crud.get_salary_rates(db, list(hours_by_user.keys()), [rate_year])
    numbers = crud.get_employee_numbers(db, project.id)

    warnings: List[str] = []
    items: List[schemas.PaymentRequestItem] = []
    all_months = set()
    for user_id, hours_by_month in hours_by_user.items():
        user = crud.get_user(db, user_id)
        weekly_hours = float(user.weekly_hours or settings.default_weekly_hours) if user else settings.default_weekly_hours
        limit = services.max_hours_per_month(weekly_hours)
        label = user.name if user and user.name else "MA"
        for month, hours in sorted(hours_by_month.items()):
            all_months.add(month)
            if hours > limit:
                warnings.append(f"{label}: {month} hat {hours:.1f}h, max. {limit:.1f}h erlaubt")

        rate = rates.get(user_id, {}).get(rate_year)
        if not rate:
            rate = settings.default_hourly_rate
            warnings.append(f"{label}: kein Stundensatz hinterlegt, {rate:.2f} € angesetzt")

        total_hours = sum(hours_by_month.values())
        items.append(
            schemas.PaymentRequestItem(
                user_profile_id=user_id,
                employee_number=numbers.get(user_id, 0),
                employee_name=user.display_name if user else "Unbekannt",
                qualification_group=(user.qualification_group if user else None) or "C",
                hours_by_month=dict(sorted(hours_by_month.items())),
                total_hours=round(total_hours, 2),
                hourly_rate=round(rate, 2),
                total_costs=round(total_hours * rate, 2),
            )
        )

    items.sort(key=lambda item: (item.employee_number or 0, item.employee_name))

    personnel_hours = sum(item.total_hours for item in items)
    personnel_costs = sum(item.total_costs for item in items)
    overhead_rate = float(project.overhead_rate or 0)
    overhead_costs = personnel_costs * overhead_rate / 100
    third_party_costs = 0.0
    total_eligible = personnel_costs + overhead_costs + third_party_costs
    funding_rate = float(project.funding_rate or settings.default_funding_rate)
    requested = total_eligible * funding_rate / 100

    totals = {
        "personnel_hours": round(personnel_hours, 2),
        "personnel_costs": round(personnel_costs, 2),
        "overhead_rate": overhead_rate,
        "overhead_costs": round(overhead_costs, 2),
        "third_party_costs": third_party_costs,
        "total_eligible_costs": round(total_eligible, 2),
        "funding_rate": funding_rate,
        "requested_amount": round(requested, 2),
    }
    logger.info(
        "Zahlungsanforderung für Projekt %s berechnet: %d Mitarbeiter, %.2f h",
        project.id,
        len(items),
        personnel_hours,
    )
    return Calculation(
        items=items,
        totals=totals,
        warnings=warnings,
        period_start=period_start,
        period_end=period_end,
        months=sorted(all_months),
    )


def from_stored(payment_request: models.PaymentRequest) -> Calculation:
    """Rebuild a calculation from a saved payment request for the export."""
    items = [schemas.PaymentRequestItem.model_validate(item) for item in payment_request.items]
    months = sorted({month for item in items for month in item.hours_by_month})
    project = payment_request.project
    personnel_costs = float(payment_request.personnel_costs or 0)
    overhead_costs = float(payment_request.overhead_costs or 0)
    overhead_rate = float(project.overhead_rate or 0) if project else 0.0
    totals = {
        "personnel_hours": float(payment_request.personnel_hours or 0),
        "personnel_costs": personnel_costs,
        "overhead_rate": overhead_rate,
        "overhead_costs": overhead_costs,
        "third_party_costs": float(payment_request.third_party_costs or 0),
        "total_eligible_costs": float(payment_request.total_eligible_costs or 0),
        "funding_rate": float(payment_request.funding_rate_applied or settings.default_funding_rate),
        "requested_amount": float(payment_request.requested_amount or 0),
    }
    return Calculation(
        items=items,
        totals=totals,
        warnings=[],
        period_start=payment_request.period_start,
        period_end=payment_request.period_end,
        months=months,
        request_number=str(payment_request.request_number),
    )
