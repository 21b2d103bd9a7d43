"""
Tests for loading and cleaning survey responses.
"""

import pytest
import numpy as np
import pandas as pd
import sys
import os

# Add the parent directory to the path to import the module
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from k10analysis.data.items import (
    K10_ITEMS, K10_ITEM_IDS, SCORE_LABELS, question_text, short_label
)
from k10analysis.data.loader import (
    normalize_column_name, normalize_columns, clean_responses, load_responses,
    ResponseDataError, DataLoadError, SchemaError, EmptyDataError
)


RAW_HEADERS = [f"K10 {i}" for i in range(1, 11)]


def write_survey(path, rows, headers=None, extra=True, sep=','):
    """Write a survey CSV with an extra id and age column."""
    headers = list(headers or RAW_HEADERS)
    df = pd.DataFrame(rows, columns=headers)
    if extra:
        df.insert(0, 'Participant ID', range(100, 100 + len(df)))
        df['Age'] = 30
    df.to_csv(path, index=False, sep=sep)
    return str(path)


def sample_rows():
    return [
        [1, 1, 1, 2, 1, 1, 1, 1, 1, 1],
        [3, 3, 2, np.nan, 3, 2, 3, 3, 2, 2],
        [5, 4, 5, 5, 4, 5, 5, 4, 5, 5],
        [2, 2, 1, 2, 2, 1, 2, 2, 1, 1],
        [np.nan] * 10,
    ]


class TestItems:
    """Tests for the item vocabulary."""

    def test_ten_items_in_order(self):
        """Test the scale has ten items in numeric order."""
        assert len(K10_ITEMS) == 10
        assert K10_ITEM_IDS == [f"k10_{i}" for i in range(1, 11)]

    def test_question_text(self):
        """Test question lookup."""
        assert question_text('k10_4') == 'About how often did you feel hopeless?'
        assert short_label('k10_4') == 'K10-4: hopeless?'
        with pytest.raises(KeyError):
            question_text('k10_11')

    def test_score_labels(self):
        """Test the response scale runs 1-5."""
        assert list(SCORE_LABELS.keys()) == [1, 2, 3, 4, 5]
        assert SCORE_LABELS[1] == 'None of the time'
        assert SCORE_LABELS[5] == 'All of the time'


class TestNormalizeColumnName:
    """Tests for column name normalization."""

    @pytest.mark.parametrize('raw, expected', [
        ('K10 1', 'k10_1'),
        ('K10_1', 'k10_1'),
        ('k10-1', 'k10_1'),
        ('  K10 (1) ', 'k10_1'),
        ('ParticipantID', 'participant_id'),
        ('Participant ID', 'participant_id'),
        ('age', 'age'),
    ])
    def test_normalize(self, raw, expected):
        """Test names reduce to snake case."""
        assert normalize_column_name(raw) == expected

    def test_collision(self):
        """Test two columns with the same normalized name are rejected."""
        df = pd.DataFrame([[1, 2]], columns=['K10 1', 'k10_1'])
        with pytest.raises(SchemaError) as excinfo:
            normalize_columns(df)
        assert excinfo.value.columns == ['k10_1']

    def test_extra_column_collision_ignored(self):
        """Test colliding columns outside the items keep only the first."""
        df = pd.DataFrame([[1, 'a', 'b']], columns=['K10 1', 'Notes', 'notes'])
        result = normalize_columns(df)
        assert list(result.columns) == ['k10_1', 'notes']
        assert result['notes'].tolist() == ['a']


class TestCleanResponses:
    """Tests for clean_responses."""

    def test_drops_incomplete_rows(self):
        """Test rows with any missing item are dropped and counted."""
        df = pd.DataFrame(sample_rows(), columns=K10_ITEM_IDS)
        cleaned, dropped = clean_responses(df)

        assert dropped == 2
        assert len(cleaned) == 3
        assert list(cleaned.columns) == K10_ITEM_IDS
        assert not cleaned.isna().any().any()

    def test_missing_columns(self):
        """Test missing item columns are named in the error."""
        df = pd.DataFrame([[1] * 8], columns=K10_ITEM_IDS[:8])
        with pytest.raises(SchemaError) as excinfo:
            clean_responses(df)
        assert excinfo.value.columns == ['k10_9', 'k10_10']
        assert 'k10_9' in str(excinfo.value)

    def test_out_of_range(self):
        """Test scores outside 1-5 are rejected."""
        rows = [[1] * 10, [1] * 9 + [6]]
        with pytest.raises(SchemaError) as excinfo:
            clean_responses(pd.DataFrame(rows, columns=K10_ITEM_IDS))
        assert excinfo.value.columns == ['k10_10']

    def test_non_numeric(self):
        """Test text scores are rejected."""
        rows = [[1] * 10, ['often'] + [1] * 9]
        with pytest.raises(SchemaError):
            clean_responses(pd.DataFrame(rows, columns=K10_ITEM_IDS))

    def test_non_integer(self):
        """Test fractional scores are rejected."""
        rows = [[1] * 10, [2.5] + [1] * 9]
        with pytest.raises(SchemaError):
            clean_responses(pd.DataFrame(rows, columns=K10_ITEM_IDS))


class TestLoadResponses:
    """Tests for load_responses."""

    def test_load(self, tmp_path):
        """Test loading keeps only complete item rows in file order."""
        path = write_survey(tmp_path / 'survey.csv', sample_rows())

        matrix, report = load_responses(path)

        assert matrix.colnames() == K10_ITEM_IDS
        assert matrix.rownames() == [1, 3, 4]
        assert matrix.shape == (3, 10)
        assert np.array_equal(matrix.values[1], [5, 4, 5, 5, 4, 5, 5, 4, 5, 5])
        assert report == {
            'path': path,
            'rows_read': 5,
            'rows_dropped': 2,
            'rows_kept': 3,
        }

    def test_schema_invariant(self, tmp_path):
        """Test every loaded row has ten numeric, non-missing fields."""
        path = write_survey(tmp_path / 'survey.csv', sample_rows())
        matrix, _ = load_responses(path)

        values = matrix.values
        assert values.shape[1] == 10
        assert np.issubdtype(values.dtype, np.number)
        assert not np.isnan(values).any()

    def test_idempotent(self, tmp_path):
        """Test loading the same file twice gives identical matrices."""
        path = write_survey(tmp_path / 'survey.csv', sample_rows())

        first, _ = load_responses(path)
        second, _ = load_responses(path)

        assert first.rownames() == second.rownames()
        assert first.colnames() == second.colnames()
        assert np.array_equal(first.values, second.values)

    def test_colliding_extra_columns(self, tmp_path):
        """Test extra columns that collide after normalization do not block loading."""
        df = pd.DataFrame([[1] * 10, [3] * 10], columns=RAW_HEADERS)
        df['Notes'] = ['first', 'second']
        df['notes'] = ['x', 'y']
        df['Age'] = 30
        df['age'] = 31
        path = tmp_path / 'survey.csv'
        df.to_csv(path, index=False)

        matrix, report = load_responses(str(path))

        assert matrix.shape == (2, 10)
        assert matrix.colnames() == K10_ITEM_IDS
        assert report['rows_dropped'] == 0

    def test_colliding_item_columns(self, tmp_path):
        """Test two columns that normalize to the same item are rejected."""
        df = pd.DataFrame([[1] * 10], columns=RAW_HEADERS)
        df['K10-3'] = 2
        path = tmp_path / 'survey.csv'
        df.to_csv(path, index=False)

        with pytest.raises(SchemaError) as excinfo:
            load_responses(str(path))
        assert excinfo.value.columns == ['k10_3']

    def test_delimiter(self, tmp_path):
        """Test a custom delimiter."""
        path = write_survey(tmp_path / 'survey.tsv', sample_rows(), sep='\t')
        matrix, _ = load_responses(path, delimiter='\t')
        assert len(matrix) == 3

    def test_missing_file(self, tmp_path):
        """Test a missing file names the path."""
        path = str(tmp_path / 'nope.csv')
        with pytest.raises(DataLoadError) as excinfo:
            load_responses(path)
        assert excinfo.value.path == path
        assert path in str(excinfo.value)

    def test_empty_file(self, tmp_path):
        """Test an empty file is a load error."""
        path = tmp_path / 'empty.csv'
        path.write_text('')
        with pytest.raises(DataLoadError):
            load_responses(str(path))

    def test_missing_columns(self, tmp_path):
        """Test a file without the item columns is a schema error."""
        path = write_survey(tmp_path / 'survey.csv', [[1] * 9],
                            headers=RAW_HEADERS[:9])
        with pytest.raises(SchemaError) as excinfo:
            load_responses(path)
        assert excinfo.value.columns == ['k10_10']

    def test_no_complete_rows(self, tmp_path):
        """Test a file without any complete row fails with an empty-data error."""
        rows = [[1] * 9 + [np.nan], [np.nan] * 10]
        path = write_survey(tmp_path / 'survey.csv', rows)

        with pytest.raises(EmptyDataError):
            load_responses(path)

    def test_error_hierarchy(self):
        """Test data errors share one base and are ValueErrors."""
        for error in (DataLoadError, SchemaError, EmptyDataError):
            assert issubclass(error, ResponseDataError)
            assert issubclass(error, ValueError)
