"""
Service d'effectif : élèves inscrits dans une classe/section.
"""

import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session

from school_erp.exceptions import NoRosterFound
from school_erp.models.student import Student

logger = logging.getLogger(__name__)


def resolve_roster(db: Session, class_id: int, section_id: int) -> List[int]:
    """
    Retourne les IDs des élèves vivants de la classe/section, triés par ID.
    Cet ordre est celui de l'appel. Lève NoRosterFound si l'effectif est vide.
    """
    student_ids = db.execute(
        select(Student.id)
        .where(
            Student.class_id == class_id,
            Student.section_id == section_id,
            Student.deleted_at.is_(None),
        )
        .order_by(Student.id)
    ).scalars().all()

    if not student_ids:
        logger.warning("Effectif vide : classe %s, section %s", class_id, section_id)
        raise NoRosterFound("Aucun élève trouvé pour la classe et la section sélectionnées.")

    return list(student_ids)
