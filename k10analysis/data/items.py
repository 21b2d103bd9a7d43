"""
Fixed vocabulary of the Kessler Psychological Distress Scale (K10).

Item identifiers are the canonical snake-case column names the loader
expects after name normalization.
"""

from collections import OrderedDict
from typing import Dict, List

# Scale order matters: histograms, centroid reports and the loader all
# present items in this order.
K10_ITEMS: Dict[str, str] = OrderedDict([
    ('k10_1', 'About how often did you feel tired out for no good reason?'),
    ('k10_2', 'About how often did you feel nervous?'),
    ('k10_3', 'About how often did you feel so nervous that nothing could calm you down?'),
    ('k10_4', 'About how often did you feel hopeless?'),
    ('k10_5', 'About how often did you feel restless or fidgety?'),
    ('k10_6', 'About how often did you feel so restless you could not sit still?'),
    ('k10_7', 'About how often did you feel depressed?'),
    ('k10_8', 'About how often did you feel that everything was an effort?'),
    ('k10_9', 'About how often did you feel so sad that nothing could cheer you up?'),
    ('k10_10', 'About how often did you feel worthless?'),
])

K10_ITEM_IDS: List[str] = list(K10_ITEMS.keys())

SCORE_LABELS: Dict[int, str] = OrderedDict([
    (1, 'None of the time'),
    (2, 'A little of the time'),
    (3, 'Some of the time'),
    (4, 'Most of the time'),
    (5, 'All of the time'),
])

MIN_SCORE = min(SCORE_LABELS)
MAX_SCORE = max(SCORE_LABELS)


def question_text(item_id: str) -> str:
    """
    Look up the question text for an item.

    Args:
        item_id: Canonical item identifier (e.g. 'k10_4')

    Returns:
        The question text

    Raises:
        KeyError: If the identifier is not a K10 item
    """
    if item_id not in K10_ITEMS:
        raise KeyError(f"Unknown K10 item '{item_id}'")
    return K10_ITEMS[item_id]


def short_label(item_id: str) -> str:
    """Short chart label, e.g. 'K10-4: hopeless?'."""
    text = question_text(item_id)
    tail = text.replace('About how often did you feel ', '')
    return f"{item_id.upper().replace('_', '-')}: {tail}"
