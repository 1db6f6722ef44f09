"""
Router pour les présences journalières (administration).
Toutes les routes exigent un token JWT avec le rôle administrateur.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from school_erp.auth import CurrentUser, require_admin
from school_erp.database import get_db
from school_erp.exceptions import SchoolERPError
from school_erp.schemas.attendance import (
    AttendanceResponse,
    AttendanceStatistics,
    MarkAttendanceRequest,
    MarkAttendanceResult,
    UpdateAttendanceRequest,
)
from school_erp.services import attendance_service, report_service, statistics_service
from school_erp.utils.dates import parse_optional_date

router = APIRouter(
    prefix="/api/v1/attendance",
    tags=["Présences"],
    dependencies=[Depends(require_admin)],
)


def _http_error(e: SchoolERPError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/mark", response_model=MarkAttendanceResult, status_code=201,
             summary="Faire l'appel d'une classe/section")
def mark_attendance(
    data: MarkAttendanceRequest,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_admin),
):
    """
    Enregistre les présences de tous les élèves d'une classe/section pour un jour.

    Comportement :
    - Idempotent : un second appel le même jour met à jour les présences existantes
    - Élève non saisi : "absent" à la création, inchangé s'il a déjà une présence
    - Élève hors effectif ou statut inconnu → 400, rien n'est écrit
    - Transaction unique : en cas d'échec, aucune présence n'est enregistrée
    """
    try:
        return attendance_service.mark_attendance(
            db,
            class_id=data.class_id,
            section_id=data.section_id,
            attendance_date=data.date,
            statuses=data.status_pairs(),
            marked_by=user.id,
        )
    except SchoolERPError as e:
        raise _http_error(e)


@router.get("/class/{class_id}", response_model=List[AttendanceResponse],
            summary="Présences d'une classe")
def get_class_attendance(
    class_id: int,
    section_id: Optional[int] = None,
    date: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """Présences d'une classe, filtrables par section et par jour (YYYY-MM-DD)."""
    try:
        on_date = parse_optional_date(date, "date")
        return attendance_service.get_class_attendance(db, class_id, section_id, on_date)
    except SchoolERPError as e:
        raise _http_error(e)


@router.get("/student/{student_id}", response_model=List[AttendanceResponse],
            summary="Historique de présences d'un élève")
def get_student_attendance(
    student_id: int,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """Présences d'un élève, de la plus récente à la plus ancienne."""
    try:
        start = parse_optional_date(start_date, "start_date")
        end = parse_optional_date(end_date, "end_date")
        return attendance_service.get_student_attendance(db, student_id, start, end)
    except SchoolERPError as e:
        raise _http_error(e)


@router.get("/statistics", response_model=AttendanceStatistics,
            summary="Statistiques de présence")
def get_statistics(
    student_id: Optional[int] = None,
    class_id: Optional[int] = None,
    section_id: Optional[int] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """
    Statistiques d'un élève (student_id) ou d'une classe (class_id, section_id optionnel).
    Exactement un des deux identifiants doit être fourni.
    """
    if (student_id is None) == (class_id is None):
        raise HTTPException(status_code=400, detail="Fournir soit student_id, soit class_id.")

    try:
        start = parse_optional_date(start_date, "start_date")
        end = parse_optional_date(end_date, "end_date")
        if student_id is not None:
            return statistics_service.get_student_statistics(db, student_id, start, end)
        return statistics_service.get_class_statistics(db, class_id, section_id, start, end)
    except SchoolERPError as e:
        raise _http_error(e)


@router.get("/reports", response_model=List[AttendanceResponse],
            summary="Rapport de présences")
def get_reports(
    class_id: Optional[int] = None,
    section_id: Optional[int] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """Présences filtrées par classe, section et période (mois courant par défaut)."""
    try:
        start = parse_optional_date(start_date, "start_date")
        end = parse_optional_date(end_date, "end_date")
        return report_service.get_attendance_report(db, class_id, section_id, start, end)
    except SchoolERPError as e:
        raise _http_error(e)


@router.get("/reports/export", summary="Exporter le rapport en CSV")
def export_reports(
    class_id: Optional[int] = None,
    section_id: Optional[int] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """
    Exporte le rapport en CSV (UTF-8 BOM, séparateur ;).
    Compatible Excel.
    """
    try:
        start = parse_optional_date(start_date, "start_date")
        end = parse_optional_date(end_date, "end_date")
        csv_content = report_service.export_report_csv(db, class_id, section_id, start, end)
    except SchoolERPError as e:
        raise _http_error(e)

    return StreamingResponse(
        iter([csv_content]),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": "attachment; filename=rapport_presences.csv"},
    )


@router.get("/{attendance_id}", response_model=AttendanceResponse, summary="Détail d'une présence")
def get_attendance(attendance_id: int, db: Session = Depends(get_db)):
    try:
        return attendance_service.get_attendance(db, attendance_id)
    except SchoolERPError as e:
        raise _http_error(e)


@router.put("/{attendance_id}", response_model=AttendanceResponse, summary="Modifier une présence")
def update_attendance(attendance_id: int, data: UpdateAttendanceRequest, db: Session = Depends(get_db)):
    """Modifie le statut d'une présence (present, absent, late, excused)."""
    try:
        return attendance_service.update_attendance(db, attendance_id, data.status)
    except SchoolERPError as e:
        raise _http_error(e)


@router.delete("/{attendance_id}", status_code=204, summary="Supprimer une présence")
def delete_attendance(attendance_id: int, db: Session = Depends(get_db)):
    """Suppression logique : la présence n'apparaît plus dans les listes ni les statistiques."""
    try:
        attendance_service.delete_attendance(db, attendance_id)
    except SchoolERPError as e:
        raise _http_error(e)
