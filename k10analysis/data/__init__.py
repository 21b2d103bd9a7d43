"""
Survey data: the K10 item vocabulary and the response loader.
"""

from k10analysis.data.items import K10_ITEMS, K10_ITEM_IDS, SCORE_LABELS
from k10analysis.data.loader import (
    load_responses, ResponseDataError, DataLoadError, SchemaError, EmptyDataError
)
