"""Provider ordering.

Display order is a total order over providers, decided tier by tier:

1. sortIndex ascending when both sides have one; a defined index sorts first.
2. createdAt ascending when both are non-zero; a zero/absent timestamp sorts
   after a non-zero one.
3. Locale-aware name comparison (zh_CN collation for Chinese, en_US otherwise).

A drag reorder assigns every provider a fresh 0-based contiguous sortIndex
equal to its new position, so the first reorder also normalises any mix of
defined and undefined indices.
"""

from functools import cmp_to_key
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from PyQt6.QtCore import QCollator, QLocale

from ..models.providers import Provider, SortOrderUpdate
from ..models.settings import Language

_collators: Dict[str, QCollator] = {}


def _collator(language: Language) -> QCollator:
    """Cached collator for the language's locale."""
    locale_name = Language(language).collation_locale
    collator = _collators.get(locale_name)
    if collator is None:
        collator = QCollator(QLocale(locale_name))
        _collators[locale_name] = collator
    return collator


def _sign(value: int) -> int:
    return (value > 0) - (value < 0)


def compare_providers(a: Provider, b: Provider, language: Language = Language.ZH) -> int:
    """Three-tier comparison; negative when a sorts before b."""
    if a.sort_index is not None and b.sort_index is not None:
        if a.sort_index != b.sort_index:
            return _sign(a.sort_index - b.sort_index)
    elif a.sort_index is not None:
        return -1
    elif b.sort_index is not None:
        return 1

    time_a = a.created_at or 0
    time_b = b.created_at or 0
    if time_a and time_b:
        if time_a != time_b:
            return _sign(time_a - time_b)
    elif time_a:
        return -1
    elif time_b:
        return 1

    return _sign(_collator(language).compare(a.name, b.name))


def sort_providers(providers: Iterable[Provider], language: Language = Language.ZH) -> List[Provider]:
    """Providers in display order. Stable, so sorting twice changes nothing."""
    return sorted(providers, key=cmp_to_key(lambda a, b: compare_providers(a, b, language)))


def reorder(
    sequence: Sequence[Provider],
    source: int,
    destination: int,
) -> Optional[Tuple[List[Provider], List[SortOrderUpdate]]]:
    """Move one provider and renumber everyone.

    Returns the reindexed sequence and the (id, sortIndex) batch to persist,
    or None when nothing moves or an index is out of range.
    """
    count = len(sequence)
    if source == destination:
        return None
    if not (0 <= source < count and 0 <= destination < count):
        return None

    items = list(sequence)
    moved = items.pop(source)
    items.insert(destination, moved)

    reindexed = [provider.model_copy(update={"sort_index": index}) for index, provider in enumerate(items)]
    updates = [SortOrderUpdate(id=provider.id, sort_index=index) for index, provider in enumerate(reindexed)]
    return reindexed, updates

