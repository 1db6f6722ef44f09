"""
Tests unitaires pour le service de présences (appel de classe + opérations unitaires).
Couverture : réconciliation création/mise à jour, absent par défaut, idempotence,
effectif vide, validation de la saisie, granularité jour, suppression logique,
traduction des erreurs SQLAlchemy.
"""

from datetime import date, datetime
from unittest.mock import MagicMock

import pytest
from sqlalchemy import func, select, text
from sqlalchemy.exc import IntegrityError, OperationalError

from school_erp.exceptions import ConflictError, NoRosterFound, NotFoundError, StoreError, ValidationError
from school_erp.models.attendance import Attendance
from school_erp.models.student import Student
from school_erp.services.attendance_service import (
    _commit,
    delete_attendance,
    get_attendance,
    get_class_attendance,
    get_student_attendance,
    mark_attendance,
    update_attendance,
)
from school_erp.services.roster_service import resolve_roster

DAY = date(2026, 10, 19)


# --- Helpers ---

def statuses_on(db, day=DAY):
    """{student_id: statut} des présences vivantes du jour."""
    rows = db.execute(
        select(Attendance).where(Attendance.date == day, Attendance.deleted_at.is_(None))
    ).scalars().all()
    return {a.student_id: a.status for a in rows}


def count_live(db, day=DAY):
    return db.execute(
        select(func.count()).select_from(Attendance)
        .where(Attendance.date == day, Attendance.deleted_at.is_(None))
    ).scalar()


def add_attendance(db, student_id, day, status="present", class_id=1, section_id=1):
    record = Attendance(
        student_id=student_id, class_id=class_id, section_id=section_id,
        date=day, status=status, marked_by=1,
    )
    db.add(record)
    db.commit()
    return record


def make_result(values):
    """Mock du résultat de db.execute(...) pour .scalars().all()."""
    result = MagicMock()
    result.scalars.return_value.all.return_value = values
    return result


# ============================================================
# Effectif
# ============================================================

def test_resolve_roster_ordre_stable(db_session, roster):
    assert resolve_roster(db_session, 1, 1) == [1, 2, 3]


def test_resolve_roster_ignore_eleves_supprimes(db_session, roster):
    db_session.get(Student, 2).deleted_at = datetime(2026, 1, 1)
    db_session.commit()
    assert resolve_roster(db_session, 1, 1) == [1, 3]


def test_resolve_roster_vide():
    db = MagicMock()
    db.execute.return_value = make_result([])
    with pytest.raises(NoRosterFound, match="Aucun élève"):
        resolve_roster(db, 1, 2)


# ============================================================
# Appel : scénario de référence
# ============================================================

def test_premier_appel_cree_toutes_les_presences(db_session, roster):
    """Effectif [1, 2, 3], saisie {1: present, 2: late} → 3 créées, 3 = absent."""
    result = mark_attendance(db_session, 1, 1, DAY, [(1, "present"), (2, "late")], marked_by=1)

    assert result.created == 3
    assert result.updated == 0
    assert result.total == 3
    assert statuses_on(db_session) == {1: "present", 2: "late", 3: "absent"}


def test_second_appel_met_a_jour_sans_doublon(db_session, roster):
    """Re-appel avec {1: absent} → 1 modifié, 2 et 3 inchangés, toujours 3 lignes."""
    mark_attendance(db_session, 1, 1, DAY, [(1, "present"), (2, "late")], marked_by=1)

    result = mark_attendance(db_session, 1, 1, DAY, [(1, "absent")], marked_by=1)

    assert result.created == 0
    assert result.updated == 3
    assert statuses_on(db_session) == {1: "absent", 2: "late", 3: "absent"}
    assert count_live(db_session) == 3


def test_eleve_non_saisi_pas_remis_a_absent(db_session, roster):
    """Un élève omis lors d'un re-appel conserve son statut existant."""
    mark_attendance(db_session, 1, 1, DAY, [(3, "excused")], marked_by=1)
    mark_attendance(db_session, 1, 1, DAY, [], marked_by=1)

    assert statuses_on(db_session)[3] == "excused"


def test_appel_idempotent(db_session, roster):
    """Le même appel deux fois → mêmes présences (IDs et statuts)."""
    saisie = [(1, "present"), (2, "absent"), (3, "late")]
    mark_attendance(db_session, 1, 1, DAY, saisie, marked_by=1)
    first = {a.id: (a.student_id, a.status) for a in db_session.execute(select(Attendance)).scalars()}

    mark_attendance(db_session, 1, 1, DAY, saisie, marked_by=1)
    second = {a.id: (a.student_id, a.status) for a in db_session.execute(select(Attendance)).scalars()}

    assert first == second


def test_nouvelle_presence_porte_classe_section_et_auteur(db_session, roster):
    mark_attendance(db_session, 1, 1, DAY, [(1, "present")], marked_by=42)

    record = db_session.execute(select(Attendance).where(Attendance.student_id == 1)).scalar()
    assert record.class_id == 1
    assert record.section_id == 1
    assert record.date == DAY
    assert record.marked_by == 42


def test_appel_jours_differents_lignes_distinctes(db_session, roster):
    mark_attendance(db_session, 1, 1, date(2026, 10, 19), [], marked_by=1)
    mark_attendance(db_session, 1, 1, date(2026, 10, 20), [], marked_by=1)

    assert count_live(db_session, date(2026, 10, 19)) == 3
    assert count_live(db_session, date(2026, 10, 20)) == 3


def test_heure_ignoree(db_session, roster):
    """Deux horodatages du même jour = le même jour de présence."""
    mark_attendance(db_session, 1, 1, datetime(2026, 10, 19, 8, 30), [(1, "late")], marked_by=1)
    result = mark_attendance(db_session, 1, 1, datetime(2026, 10, 19, 17, 0), [(1, "present")], marked_by=1)

    assert result.created == 0
    assert count_live(db_session) == 3
    assert statuses_on(db_session)[1] == "present"


def test_presence_supprimee_ignoree(db_session, roster):
    """Une présence supprimée logiquement n'est pas réutilisée : une nouvelle est créée."""
    mark_attendance(db_session, 1, 1, DAY, [(1, "present")], marked_by=1)
    record = db_session.execute(select(Attendance).where(Attendance.student_id == 1)).scalar()
    delete_attendance(db_session, record.id)

    result = mark_attendance(db_session, 1, 1, DAY, [(1, "late")], marked_by=1)

    assert result.created == 1
    assert result.updated == 2
    assert count_live(db_session) == 3
    assert db_session.execute(select(func.count()).select_from(Attendance)).scalar() == 4


# ============================================================
# Appel : erreurs
# ============================================================

def test_effectif_vide_rien_ecrit(db_session, roster):
    with pytest.raises(NoRosterFound):
        mark_attendance(db_session, 1, 2, DAY, [], marked_by=1)
    assert db_session.execute(select(func.count()).select_from(Attendance)).scalar() == 0


def test_eleve_hors_effectif_rejete(db_session, roster):
    with pytest.raises(ValidationError, match="n'appartient pas"):
        mark_attendance(db_session, 1, 1, DAY, [(1, "present"), (99, "present")], marked_by=1)
    assert db_session.execute(select(func.count()).select_from(Attendance)).scalar() == 0


def test_statut_invalide_rejete(db_session, roster):
    with pytest.raises(ValidationError, match="statut 'malade' invalide"):
        mark_attendance(db_session, 1, 1, DAY, [(1, "malade")], marked_by=1)
    assert db_session.execute(select(func.count()).select_from(Attendance)).scalar() == 0


def test_eleve_saisi_deux_fois_rejete(db_session, roster):
    with pytest.raises(ValidationError, match="plusieurs fois"):
        mark_attendance(db_session, 1, 1, DAY, [(1, "present"), (1, "absent")], marked_by=1)


def test_erreurs_regroupees_en_une_seule(db_session, roster):
    with pytest.raises(ValidationError) as exc:
        mark_attendance(db_session, 1, 1, DAY, [(99, "present"), (2, "malade")], marked_by=1)
    assert "99" in exc.value.message
    assert "malade" in exc.value.message


def test_conflit_concurrent_traduit_en_conflict_error():
    """Insertion concurrente détectée par l'index unique → ConflictError, rollback."""
    db = MagicMock()
    db.execute.side_effect = [make_result([1, 2]), make_result([])]
    db.commit.side_effect = IntegrityError(
        "INSERT", None,
        Exception('duplicate key value violates unique constraint "uq_attendances_student_day_live"'),
    )

    with pytest.raises(ConflictError):
        mark_attendance(db, 1, 1, DAY, [], marked_by=1)
    db.rollback.assert_called_once()


def test_auteur_inconnu_traduit_en_store_error(db_session, roster):
    """Clé étrangère violée (marked_by absent de users) → StoreError, pas ConflictError."""
    db_session.execute(text("PRAGMA foreign_keys=ON"))
    db_session.commit()

    with pytest.raises(StoreError):
        mark_attendance(db_session, 1, 1, DAY, [(1, "present")], marked_by=999)
    assert db_session.execute(select(func.count()).select_from(Attendance)).scalar() == 0


def test_violation_check_traduite_en_store_error():
    db = MagicMock()
    db.commit.side_effect = IntegrityError(
        "UPDATE", None, Exception('new row violates check constraint "ck_attendances_status"'),
    )

    with pytest.raises(StoreError):
        _commit(db, "Échec de la mise à jour de la présence.")
    db.rollback.assert_called_once()


def test_doublon_vivant_sqlite_traduit_en_conflict_error(db_session, roster):
    """Le message SQLite de l'index unique est reconnu comme un doublon."""
    add_attendance(db_session, 1, DAY)
    db_session.add(Attendance(student_id=1, class_id=1, section_id=1, date=DAY, status="late", marked_by=1))

    with pytest.raises(ConflictError):
        _commit(db_session, "Échec de l'enregistrement des présences.")
    assert count_live(db_session) == 1


def test_echec_base_traduit_en_store_error():
    db = MagicMock()
    db.execute.side_effect = [make_result([1, 2]), make_result([])]
    db.commit.side_effect = OperationalError("INSERT", None, None)

    with pytest.raises(StoreError):
        mark_attendance(db, 1, 1, DAY, [(1, "present")], marked_by=1)
    db.rollback.assert_called_once()


def test_insertion_en_batch_unique():
    """Les nouvelles présences sont ajoutées en un seul add_all, commit unique."""
    db = MagicMock()
    db.execute.side_effect = [make_result([1, 2, 3]), make_result([])]

    mark_attendance(db, 1, 1, DAY, [(2, "late")], marked_by=1)

    db.add_all.assert_called_once()
    created = db.add_all.call_args[0][0]
    assert [a.student_id for a in created] == [1, 2, 3]
    assert [a.status for a in created] == ["absent", "late", "absent"]
    db.commit.assert_called_once()


def test_index_unique_partiel_bloque_doublon_vivant(db_session, roster):
    """Deux présences vivantes pour (élève, jour) sont refusées par la base."""
    add_attendance(db_session, 1, DAY)
    db_session.add(Attendance(student_id=1, class_id=1, section_id=1, date=DAY, status="late", marked_by=1))
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()


# ============================================================
# Opérations unitaires
# ============================================================

def test_update_attendance_succes(db_session, roster):
    record = add_attendance(db_session, 1, DAY, "absent")
    result = update_attendance(db_session, record.id, "excused")
    assert result.status == "excused"
    assert result.id == record.id


def test_update_attendance_statut_invalide(db_session, roster):
    record = add_attendance(db_session, 1, DAY, "absent")
    with pytest.raises(ValidationError, match="Statut invalide"):
        update_attendance(db_session, record.id, "malade")


def test_update_attendance_introuvable(db_session, roster):
    with pytest.raises(NotFoundError):
        update_attendance(db_session, 999, "present")


def test_get_attendance_supprimee_introuvable(db_session, roster):
    record = add_attendance(db_session, 1, DAY)
    delete_attendance(db_session, record.id)
    with pytest.raises(NotFoundError):
        get_attendance(db_session, record.id)


def test_delete_attendance_logique(db_session, roster):
    record = add_attendance(db_session, 1, DAY)
    delete_attendance(db_session, record.id)

    db_session.refresh(record)
    assert record.deleted_at is not None


def test_get_student_attendance_fenetre_inclusive_et_tri(db_session, roster):
    for d in (date(2026, 10, 1), date(2026, 10, 5), date(2026, 10, 10), date(2026, 10, 11)):
        add_attendance(db_session, 1, d)

    result = get_student_attendance(db_session, 1, date(2026, 10, 1), date(2026, 10, 10))

    assert [r.date for r in result] == [date(2026, 10, 10), date(2026, 10, 5), date(2026, 10, 1)]


def test_get_class_attendance_filtres(db_session, roster):
    add_attendance(db_session, 3, DAY, section_id=1)
    add_attendance(db_session, 1, DAY, section_id=1)
    add_attendance(db_session, 2, DAY, section_id=2)
    add_attendance(db_session, 1, date(2026, 10, 20), section_id=1)

    par_jour = get_class_attendance(db_session, 1, on_date=DAY)
    assert [r.student_id for r in par_jour] == [1, 2, 3]

    par_section = get_class_attendance(db_session, 1, section_id=1, on_date=DAY)
    assert [r.student_id for r in par_section] == [1, 3]

    tout = get_class_attendance(db_session, 1)
    assert len(tout) == 4
