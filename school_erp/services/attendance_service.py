"""
Service métier des présences journalières.

Appel de classe (mark_attendance) : réconciliation par élève
- Une présence vivante existe pour (élève, jour) → mise à jour du statut si fourni
- Sinon → nouvelle présence, statut fourni ou "absent" par défaut
- Tout est commité en une seule transaction : un échec n'écrit rien
- Rejouer le même appel met à jour les lignes existantes, sans doublon
- L'index unique partiel (student_id, date) WHERE deleted_at IS NULL bloque
  les insertions concurrentes : le perdant reçoit une ConflictError
"""

import logging
from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from school_erp.exceptions import ConflictError, NotFoundError, StoreError, ValidationError
from school_erp.models.attendance import ATTENDANCE_STATUSES, LIVE_DAY_INDEX, Attendance
from school_erp.schemas.attendance import AttendanceResponse, MarkAttendanceResult
from school_erp.services.roster_service import resolve_roster
from school_erp.utils.dates import apply_date_window, to_day

logger = logging.getLogger(__name__)

DEFAULT_STATUS = "absent"

# Élève, classe et section chargés avec la présence (LEFT OUTER JOIN)
WITH_RELATED = (
    joinedload(Attendance.student),
    joinedload(Attendance.school_class),
    joinedload(Attendance.section),
)


def mark_attendance(
    db: Session,
    class_id: int,
    section_id: int,
    attendance_date: date,
    statuses: Iterable[Tuple[int, str]],
    marked_by: int,
) -> MarkAttendanceResult:
    """
    Enregistre l'appel d'une classe/section pour un jour.

    Étapes :
    1. Résoudre l'effectif (NoRosterFound si vide, rien n'est écrit)
    2. Valider la saisie : élèves dans l'effectif, statuts autorisés
    3. Charger les présences vivantes du jour pour l'effectif
    4. Pour chaque élève, dans l'ordre de l'effectif : mise à jour ou création
    5. Insérer les nouvelles présences en batch et commiter une seule fois
    """
    roster = resolve_roster(db, class_id, section_id)
    requested = _validate_statuses(roster, statuses)
    day = to_day(attendance_date)

    existing: Dict[int, Attendance] = {
        a.student_id: a
        for a in db.execute(
            select(Attendance).where(
                Attendance.student_id.in_(roster),
                Attendance.date == day,
                Attendance.deleted_at.is_(None),
            )
        ).scalars().all()
    }

    to_create: List[Attendance] = []
    updated = 0

    for student_id in roster:
        status = requested.get(student_id)
        record = existing.get(student_id)

        if record is not None:
            # Statut non fourni → on conserve l'existant (pas de remise à "absent")
            if status is not None:
                record.status = status
            updated += 1
            logger.debug("Élève %s : présence %s mise à jour (%s)", student_id, record.id, record.status)
            continue

        to_create.append(Attendance(
            student_id=student_id,
            class_id=class_id,
            section_id=section_id,
            date=day,
            status=status or DEFAULT_STATUS,
            marked_by=marked_by,
        ))
        logger.debug("Élève %s : nouvelle présence (%s)", student_id, status or DEFAULT_STATUS)

    if to_create:
        db.add_all(to_create)

    _commit(db, "Échec de l'enregistrement des présences.")

    logger.info(
        "Appel classe=%s section=%s date=%s : %d créées, %d mises à jour",
        class_id, section_id, day, len(to_create), updated,
    )

    return MarkAttendanceResult(
        message="Présences enregistrées avec succès.",
        created=len(to_create),
        updated=updated,
        total=len(roster),
    )


def get_attendance(db: Session, attendance_id: int) -> AttendanceResponse:
    """Retourne une présence vivante par son ID. Lève NotFoundError sinon."""
    return to_response(_get_live(db, attendance_id))


def update_attendance(db: Session, attendance_id: int, status: str) -> AttendanceResponse:
    """Modifie le statut d'une présence existante."""
    if status not in ATTENDANCE_STATUSES:
        raise ValidationError(
            f"Statut invalide. Valeurs acceptées : {', '.join(ATTENDANCE_STATUSES)}"
        )

    record = _get_live(db, attendance_id)
    record.status = status
    _commit(db, "Échec de la mise à jour de la présence.")
    db.refresh(record)
    return to_response(record)


def delete_attendance(db: Session, attendance_id: int) -> None:
    """
    Suppression logique (nettoyage administratif).
    L'enregistrement reste en base avec deleted_at renseigné.
    """
    record = _get_live(db, attendance_id)
    record.deleted_at = datetime.now(timezone.utc)
    _commit(db, "Échec de la suppression de la présence.")
    logger.info("Présence %s supprimée (logique)", attendance_id)


def get_class_attendance(
    db: Session,
    class_id: int,
    section_id: Optional[int] = None,
    on_date: Optional[date] = None,
) -> List[AttendanceResponse]:
    """Présences d'une classe, optionnellement pour une section et/ou un jour, triées par élève."""
    stmt = select(Attendance).options(*WITH_RELATED).where(
        Attendance.class_id == class_id,
        Attendance.deleted_at.is_(None),
    )
    if section_id is not None:
        stmt = stmt.where(Attendance.section_id == section_id)
    if on_date is not None:
        stmt = stmt.where(Attendance.date == to_day(on_date))

    records = db.execute(
        stmt.order_by(Attendance.student_id, Attendance.date.desc())
    ).scalars().all()
    return [to_response(r) for r in records]


def get_student_attendance(
    db: Session,
    student_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> List[AttendanceResponse]:
    """Historique d'un élève sur la fenêtre [start_date, end_date], du plus récent au plus ancien."""
    stmt = select(Attendance).options(*WITH_RELATED).where(
        Attendance.student_id == student_id,
        Attendance.deleted_at.is_(None),
    )
    stmt = apply_date_window(stmt, Attendance.date, start_date, end_date)

    records = db.execute(stmt.order_by(Attendance.date.desc())).scalars().all()
    return [to_response(r) for r in records]


def to_response(record: Attendance) -> AttendanceResponse:
    """Construit le schéma de réponse avec les noms de l'élève, de la classe et de la section."""
    student = record.student
    return AttendanceResponse(
        id=record.id,
        student_id=record.student_id,
        student_name=f"{student.first_name} {student.last_name}" if student is not None else None,
        class_id=record.class_id,
        class_name=record.school_class.name if record.school_class is not None else None,
        section_id=record.section_id,
        section_name=record.section.name if record.section is not None else None,
        date=record.date,
        status=record.status,
        marked_by=record.marked_by,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _validate_statuses(roster: List[int], statuses: Iterable[Tuple[int, str]]) -> Dict[int, str]:
    """
    Vérifie la saisie avant toute écriture et la retourne sous forme de dict.
    Toutes les anomalies sont regroupées dans une seule ValidationError.
    """
    roster_set = set(roster)
    requested: Dict[int, str] = {}
    errors: List[str] = []

    for student_id, status in statuses:
        if student_id not in roster_set:
            errors.append(f"l'élève {student_id} n'appartient pas à cette classe/section")
        elif student_id in requested:
            errors.append(f"l'élève {student_id} est saisi plusieurs fois")
        if status not in ATTENDANCE_STATUSES:
            errors.append(f"statut '{status}' invalide pour l'élève {student_id}")
        requested[student_id] = status

    if errors:
        raise ValidationError("Saisie invalide : " + " ; ".join(errors) + ".")
    return requested


def _get_live(db: Session, attendance_id: int) -> Attendance:
    record = db.execute(
        select(Attendance).options(*WITH_RELATED).where(
            Attendance.id == attendance_id,
            Attendance.deleted_at.is_(None),
        )
    ).scalar()
    if record is None:
        raise NotFoundError("Présence introuvable.")
    return record


def _commit(db: Session, failure_message: str) -> None:
    """Commit unique ; rollback et traduction des erreurs SQLAlchemy en erreurs métier."""
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if not _is_live_duplicate(exc):
            # Clé étrangère ou contrainte CHECK : rejouer l'appel ne changerait rien
            logger.error(failure_message, exc_info=True)
            raise StoreError(failure_message)
        logger.warning("Présence vivante déjà enregistrée lors du commit", exc_info=True)
        raise ConflictError(
            "Une présence existe déjà pour un élève à cette date. Réessayer l'appel."
        )
    except SQLAlchemyError:
        db.rollback()
        logger.error(failure_message, exc_info=True)
        raise StoreError(failure_message)


def _is_live_duplicate(exc: IntegrityError) -> bool:
    """
    Vrai si la violation porte sur l'index unique (student_id, date) des présences vivantes.
    PostgreSQL nomme l'index ; SQLite ne cite que les colonnes.
    """
    message = str(exc.orig)
    return LIVE_DAY_INDEX in message or "attendances.student_id, attendances.date" in message
