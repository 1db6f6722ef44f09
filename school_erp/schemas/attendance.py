"""
Schémas Pydantic pour les présences journalières.

Note : on importe datetime en tant que module (dt) pour éviter le conflit de nommage
entre le champ `date` et le type `datetime.date` dans Pydantic v2.
"""

import datetime as dt
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, field_validator

from school_erp.exceptions import ValidationError
from school_erp.models.attendance import ATTENDANCE_STATUSES
from school_erp.utils.dates import parse_date


class MarkAttendanceRequest(BaseModel):
    """Corps de POST /mark : statut par élève pour une classe/section et un jour."""

    class_id: int
    section_id: int
    date: dt.date
    attendance: Dict[int, str]    # student_id → statut ; les élèves absents de la map sont traités à part

    @field_validator("date", mode="before")
    @classmethod
    def strict_date_format(cls, v):
        if isinstance(v, dt.date):
            return v
        if not isinstance(v, str):
            raise ValueError("Format de date invalide. Utiliser YYYY-MM-DD.")
        try:
            return parse_date(v)
        except ValidationError as exc:
            raise ValueError(exc.message)

    @field_validator("attendance", mode="before")
    @classmethod
    def unique_student_keys(cls, v):
        """
        Les clés JSON sont des chaînes : "1" et "01" désignent le même élève.
        Une telle collision est refusée au lieu de garder silencieusement la dernière valeur.
        """
        if not isinstance(v, dict):
            return v
        seen: Dict[int, str] = {}
        duplicates: List[str] = []
        for key in v:
            try:
                student_id = int(key)
            except (TypeError, ValueError):
                continue  # rejeté ensuite par la validation Dict[int, str]
            if student_id in seen:
                duplicates.append(f"l'élève {student_id} est saisi plusieurs fois ('{seen[student_id]}', '{key}')")
            else:
                seen[student_id] = key
        if duplicates:
            raise ValueError("Saisie invalide : " + " ; ".join(duplicates) + ".")
        return v

    def status_pairs(self) -> List[Tuple[int, str]]:
        """La map JSON sous forme de séquence ordonnée (student_id, statut)."""
        return list(self.attendance.items())


class MarkAttendanceResult(BaseModel):
    """Rapport retourné après un appel de classe."""

    message: str
    created: int
    updated: int
    total: int


class UpdateAttendanceRequest(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def valid_status(cls, v: str) -> str:
        if v not in ATTENDANCE_STATUSES:
            raise ValueError(f"Statut invalide. Valeurs acceptées : {', '.join(ATTENDANCE_STATUSES)}")
        return v


class AttendanceResponse(BaseModel):
    id: int
    student_id: int
    student_name: Optional[str] = None     # "Prénom Nom"
    class_id: int
    class_name: Optional[str] = None
    section_id: int
    section_name: Optional[str] = None
    date: dt.date
    status: str
    marked_by: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class AttendanceStatistics(BaseModel):
    """Compteurs par statut et taux de présence (present / total * 100)."""

    total: int
    present: int
    absent: int
    late: int
    excused: int
    percentage: float
