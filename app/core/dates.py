"""Utilitaires de calendrier (arithmétique en mois)."""

import calendar
from datetime import date, datetime, timezone


def add_months(value: date, months: int) -> date:
    """
    Ajoute un nombre de mois à une date.

    Le jour est borné au dernier jour du mois cible (31 janvier + 1 mois = 28/29 février).
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def months_between(start: date, end: date) -> int:
    """Différence en mois calendaires (les jours sont ignorés)."""
    return (end.year - start.year) * 12 + (end.month - start.month)


def today_utc() -> date:
    return datetime.now(timezone.utc).date()
