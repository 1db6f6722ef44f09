"""
Modèle SQLAlchemy pour les utilisateurs.
Version minimale : l'émission des tokens et la gestion des comptes sont externes.
"""

from sqlalchemy import Column, DateTime, Integer, String, func

from school_erp.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False)  # admin, teacher, student
    status = Column(String(20), default="active")
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime, nullable=True)
