"""
Modèle SQLAlchemy pour les présences journalières.

Une présence = un élève, un jour calendaire (colonne DATE, l'heure est ignorée).
Suppression logique uniquement : deleted_at renseigné = enregistrement mort.
L'index unique partiel garantit au plus une présence vivante par (élève, jour).
"""

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Index, Integer, String, func, text
from sqlalchemy.orm import relationship

from school_erp.database import Base

ATTENDANCE_STATUSES = ("present", "absent", "late", "excused")

# Nom de l'index unique partiel : une violation = présence vivante déjà enregistrée
LIVE_DAY_INDEX = "uq_attendances_student_day_live"


class Attendance(Base):
    """Présence d'un élève pour une classe/section à une date donnée."""
    __tablename__ = "attendances"
    __table_args__ = (
        CheckConstraint(
            "status IN ('present', 'absent', 'late', 'excused')",
            name="ck_attendances_status",
        ),
        Index(
            LIVE_DAY_INDEX,
            "student_id",
            "date",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)

    student_id = Column(Integer, ForeignKey("students.id"), nullable=False, index=True)
    class_id = Column(Integer, ForeignKey("classes.id"), nullable=False, index=True)
    section_id = Column(Integer, ForeignKey("sections.id"), nullable=False)

    date = Column(Date, nullable=False, index=True)
    status = Column(String(10), nullable=False)       # present, absent, late, excused
    marked_by = Column(Integer, ForeignKey("users.id"), nullable=False)  # Acteur ayant saisi

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime, nullable=True)

    student = relationship("Student")
    school_class = relationship("SchoolClass")
    section = relationship("Section")
