"""
Configuration partagée pour tous les tests.
- client : override get_db (MagicMock) et require_admin (admin fictif), aucune connexion PostgreSQL
- anonymous_client : get_db mocké, authentification réelle (tests JWT)
- db_session : session SQLite en mémoire pour les scénarios de réconciliation
"""

import pytest
from fastapi.testclient import TestClient
from unittest.mock import MagicMock
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from school_erp.auth import CurrentUser, require_admin
from school_erp.database import Base, get_db
from school_erp.main import app
from school_erp.models import SchoolClass, Section, Student, User

ADMIN = CurrentUser(id=1, role="admin", email="admin@school.test")


@pytest.fixture
def client():
    """Client HTTP de test avec la BDD mockée et un administrateur authentifié."""
    mock_db = MagicMock()
    app.dependency_overrides[get_db] = lambda: mock_db
    app.dependency_overrides[require_admin] = lambda: ADMIN
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def anonymous_client():
    """Client HTTP de test avec la BDD mockée, sans override de l'authentification."""
    mock_db = MagicMock()
    app.dependency_overrides[get_db] = lambda: mock_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def db_session():
    """Session SQLite en mémoire, schéma complet (index unique partiel inclus)."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def roster(db_session):
    """
    Classe 1 avec deux sections :
    - section 1 : élèves 1, 2, 3
    - section 2 : aucun élève
    """
    db_session.add(User(id=1, email="admin@school.test", password_hash="x", role="admin"))
    db_session.add(SchoolClass(id=1, name="1st", level=1))
    db_session.add_all([
        Section(id=1, class_id=1, name="A"),
        Section(id=2, class_id=1, name="B"),
    ])
    db_session.add_all([
        Student(
            id=i,
            admission_number=f"ADM-{i:03d}",
            first_name=f"Prénom{i}",
            last_name=f"Nom{i}",
            class_id=1,
            section_id=1,
        )
        for i in (1, 2, 3)
    ])
    db_session.commit()
    return [1, 2, 3]
