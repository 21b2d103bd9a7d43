"""
Per-item score distributions.
"""

import pandas as pd

from k10analysis.data.items import K10_ITEMS, SCORE_LABELS, short_label
from k10analysis.math.response_matrix import ResponseMatrix


def item_scores_long(nmat: ResponseMatrix) -> pd.DataFrame:
    """
    Reshape responses into one (respondent, item, question, score) row per answer.

    Items keep scale order via an ordered categorical.
    """
    long_df = nmat.to_long(row_label='respondent', col_label='item', value_label='score')
    items = nmat.colnames()
    long_df['question'] = long_df['item'].map(lambda item: K10_ITEMS.get(item, item))
    long_df['item'] = pd.Categorical(long_df['item'], categories=items, ordered=True)
    long_df['score'] = long_df['score'].astype(int)
    return long_df[['respondent', 'item', 'question', 'score']]


def item_score_counts(nmat: ResponseMatrix) -> pd.DataFrame:
    """
    Count responses per item and score.

    Every score on the scale appears for every item, with a count of zero
    when nobody chose it.

    Returns:
        DataFrame with columns item, label, score, count
    """
    long_df = item_scores_long(nmat)
    items = nmat.colnames()
    scores = list(SCORE_LABELS.keys())

    counts = (
        long_df.assign(item=long_df['item'].astype(object))
        .groupby(['item', 'score'])
        .size()
        .reindex(pd.MultiIndex.from_product([items, scores], names=['item', 'score']),
                 fill_value=0)
        .rename('count')
        .reset_index()
    )
    counts['label'] = counts['item'].map(
        lambda item: short_label(item) if item in K10_ITEMS else str(item)
    )
    counts['count'] = counts['count'].astype(int)
    return counts[['item', 'label', 'score', 'count']]
