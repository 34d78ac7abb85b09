"""Conflict detection for exclusive relationship kinds (date range overlap).

Intervals are closed: [start, end] includes both days, so a tenancy ending
on 2024-03-31 and one starting on 2024-04-01 do not overlap. A missing end
date means the interval is open-ended.
"""
from datetime import date
from itertools import combinations
from typing import Iterable, Optional

from immoverwaltung.utils import parse_datum


def intervals_overlap(s1: date, e1: Optional[date], s2: date, e2: Optional[date]) -> bool:
    """
    Check whether two closed date intervals overlap.

    Examples:
        >>> intervals_overlap(date(2024, 3, 15), date(2024, 4, 30),
        ...                   date(2024, 1, 1), date(2024, 3, 31))
        True
        >>> intervals_overlap(date(2024, 4, 1), date(2024, 4, 30),
        ...                   date(2024, 1, 1), date(2024, 3, 31))
        False
        >>> intervals_overlap(date(2030, 1, 1), date(2030, 1, 31),
        ...                   date(2024, 1, 1), None)
        True
    """
    e1 = e1 or date.max
    e2 = e2 or date.max
    return s1 <= e2 and e1 >= s2


def has_overlap(start: date, ende: Optional[date], zeitraeume: Iterable[tuple]) -> bool:
    """Check a candidate interval against (start, end) pairs.

    Pairs without a start date cannot be placed in time and are skipped.
    Values may be date objects or ISO strings.
    """
    for z_start, z_ende in zeitraeume:
        z_start = parse_datum(z_start)
        if z_start is None:
            continue
        if intervals_overlap(start, ende, z_start, parse_datum(z_ende)):
            return True
    return False


def finde_konflikte(beziehungen: list[dict], schluessel: str) -> list[tuple[dict, dict]]:
    """Find overlapping pairs among persisted relationships.

    Args:
        beziehungen: Relationship rows (already restricted to one exclusive kind)
        schluessel: Grouping column, 'immobilien_id' or 'kontakt_id'

    Returns:
        List of (erste, zweite) row pairs whose intervals overlap
    """
    gruppen = {}
    for beziehung in beziehungen:
        if not beziehung.get('startdatum'):
            continue
        gruppen.setdefault(beziehung.get(schluessel), []).append(beziehung)

    konflikte = []
    for eintraege in gruppen.values():
        eintraege.sort(key=lambda b: b['startdatum'])
        for erste, zweite in combinations(eintraege, 2):
            if intervals_overlap(
                parse_datum(erste['startdatum']), parse_datum(erste.get('enddatum')),
                parse_datum(zweite['startdatum']), parse_datum(zweite.get('enddatum')),
            ):
                konflikte.append((erste, zweite))
    return konflikte
