"""
Statistiques de présence pour un élève ou pour une classe (et section).

Un seul COUNT(*) ... GROUP BY status : chaque compteur applique le même filtre
(sujet + fenêtre de dates), sans contamination d'un statut à l'autre.
"""

from datetime import date
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from school_erp.models.attendance import ATTENDANCE_STATUSES, Attendance
from school_erp.schemas.attendance import AttendanceStatistics
from school_erp.utils.dates import apply_date_window


def get_student_statistics(
    db: Session,
    student_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> AttendanceStatistics:
    """Statistiques d'un élève sur la fenêtre [start_date, end_date] (bornes incluses)."""
    return _compute(db, [Attendance.student_id == student_id], start_date, end_date)


def get_class_statistics(
    db: Session,
    class_id: int,
    section_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> AttendanceStatistics:
    """Statistiques d'une classe, restreintes à une section si fournie."""
    criteria = [Attendance.class_id == class_id]
    if section_id is not None:
        criteria.append(Attendance.section_id == section_id)
    return _compute(db, criteria, start_date, end_date)


def _compute(db: Session, criteria, start_date, end_date) -> AttendanceStatistics:
    stmt = (
        select(Attendance.status, func.count())
        .where(*criteria, Attendance.deleted_at.is_(None))
    )
    stmt = apply_date_window(stmt, Attendance.date, start_date, end_date)

    counts = {status: 0 for status in ATTENDANCE_STATUSES}
    for status, count in db.execute(stmt.group_by(Attendance.status)).all():
        counts[status] = count

    total = sum(counts.values())
    # total = 0 → 0 %, pas de division par zéro
    percentage = counts["present"] / total * 100 if total else 0.0

    return AttendanceStatistics(
        total=total,
        present=counts["present"],
        absent=counts["absent"],
        late=counts["late"],
        excused=counts["excused"],
        percentage=percentage,
    )
