"""
Rapports de présences filtrés par classe, section et période.
Sans dates fournies, la période par défaut est le mois courant.
"""

import csv
import io
from datetime import date
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from school_erp.exceptions import ValidationError
from school_erp.models.attendance import Attendance
from school_erp.schemas.attendance import AttendanceResponse
from school_erp.services.attendance_service import WITH_RELATED, to_response
from school_erp.utils.dates import DATE_FORMAT, apply_date_window, month_bounds


def get_attendance_report(
    db: Session,
    class_id: Optional[int] = None,
    section_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    today: Optional[date] = None,
) -> List[AttendanceResponse]:
    """
    Retourne les présences vivantes de la période, triées par date décroissante
    puis par élève croissant.

    Bornes manquantes : premier / dernier jour du mois de `today` (aujourd'hui par défaut).
    Lève ValidationError si la période est inversée.
    """
    first_day, last_day = month_bounds(today)
    start_date = start_date or first_day
    end_date = end_date or last_day

    if start_date > end_date:
        raise ValidationError("La date de début doit précéder la date de fin.")

    stmt = select(Attendance).options(*WITH_RELATED).where(Attendance.deleted_at.is_(None))
    if class_id is not None:
        stmt = stmt.where(Attendance.class_id == class_id)
    if section_id is not None:
        stmt = stmt.where(Attendance.section_id == section_id)
    stmt = apply_date_window(stmt, Attendance.date, start_date, end_date)

    records = db.execute(
        stmt.order_by(Attendance.date.desc(), Attendance.student_id)
    ).scalars().all()
    return [to_response(r) for r in records]


def export_report_csv(
    db: Session,
    class_id: Optional[int] = None,
    section_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    today: Optional[date] = None,
) -> str:
    """
    Génère le rapport au format CSV (séparateur ;).
    Retourne le contenu CSV sous forme de string (UTF-8 BOM pour Excel).
    """
    records = get_attendance_report(db, class_id, section_id, start_date, end_date, today)

    output = io.StringIO()
    writer = csv.writer(output, delimiter=";")
    writer.writerow([
        "date", "student_id", "student_name", "class_id", "class_name",
        "section_id", "section_name", "status", "marked_by",
    ])

    for r in records:
        writer.writerow([
            r.date.strftime(DATE_FORMAT),
            r.student_id,
            r.student_name or "",
            r.class_id,
            r.class_name or "",
            r.section_id,
            r.section_name or "",
            r.status,
            r.marked_by,
        ])

    return "\ufeff" + output.getvalue()  # BOM pour compatibilité Excel
