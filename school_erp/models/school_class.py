"""
Modèles SQLAlchemy pour les classes et leurs sections.
Nommé school_class pour éviter le conflit avec le mot-clé Python 'class'.
"""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, func

from school_erp.database import Base


class SchoolClass(Base):
    __tablename__ = "classes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)   # Ex : "1st", "2nd"
    level = Column(Integer, nullable=False)      # Niveau numérique pour le tri
    capacity = Column(Integer, nullable=True)
    status = Column(String(20), default="active")
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime, nullable=True)


class Section(Base):
    """Section d'une classe (A, B, C...)."""
    __tablename__ = "sections"

    id = Column(Integer, primary_key=True, autoincrement=True)
    class_id = Column(Integer, ForeignKey("classes.id"), nullable=False)
    name = Column(String(20), nullable=False)
    capacity = Column(Integer, nullable=True)
    status = Column(String(20), default="active")
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime, nullable=True)
