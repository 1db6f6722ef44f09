"""
Utilitaires de dates partagés par les services de présences.

Granularité : le jour calendaire. L'heure est toujours ignorée.
"""

import calendar
import re
from datetime import date, datetime
from typing import Optional, Tuple

from school_erp.exceptions import ValidationError

DATE_FORMAT = "%Y-%m-%d"
_DATE_SHAPE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_date(value: str, field: str = "date") -> date:
    """
    Parse une date au format strict YYYY-MM-DD.
    Lève ValidationError si la valeur est vide ou mal formée
    (jour et mois sur deux chiffres : "2026-1-5" est refusé).
    """
    if not value or not value.strip():
        raise ValidationError(f"Le champ '{field}' est obligatoire.")
    value = value.strip()
    if not _DATE_SHAPE.match(value):
        raise ValidationError(f"Format de date invalide pour '{field}'. Utiliser YYYY-MM-DD.")
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except ValueError:
        raise ValidationError(f"Format de date invalide pour '{field}'. Utiliser YYYY-MM-DD.")


def parse_optional_date(value: Optional[str], field: str) -> Optional[date]:
    """Comme parse_date, mais une valeur absente ou vide retourne None."""
    if value is None or not value.strip():
        return None
    return parse_date(value, field)


def to_day(value) -> date:
    """Ramène un datetime à son jour calendaire (les dates sont retournées telles quelles)."""
    if isinstance(value, datetime):
        return value.date()
    return value


def month_bounds(today: Optional[date] = None) -> Tuple[date, date]:
    """Premier et dernier jour du mois de `today` (mois courant par défaut)."""
    today = to_day(today or date.today())
    last_day = calendar.monthrange(today.year, today.month)[1]
    return today.replace(day=1), today.replace(day=last_day)


def apply_date_window(stmt, column, start_date: Optional[date] = None, end_date: Optional[date] = None):
    """Restreint un select à la fenêtre [start_date, end_date], bornes incluses et optionnelles."""
    if start_date is not None:
        stmt = stmt.where(column >= to_day(start_date))
    if end_date is not None:
        stmt = stmt.where(column <= to_day(end_date))
    return stmt
