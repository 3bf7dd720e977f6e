"""
Tests for cohort selection and the Training/Test partition.
"""

import numpy as np
import pandas as pd
import pytest

from reftrait.cohort import CohortSplit, build_matrix, complete_subjects, split_cohorts
from reftrait.errors import MissingValue


SUBJECTS = [f'F{i:03d}' for i in range(100)]


class TestSplitCohorts:

    def test_same_seed_same_split(self):
        """Test that the same seed reproduces the split."""
        first = split_cohorts(SUBJECTS, seed=3)
        second = split_cohorts(SUBJECTS, seed=3)
        assert first == second

    def test_different_seed_different_split(self):
        """Test that a different seed changes the split."""
        assert split_cohorts(SUBJECTS, seed=3).train != split_cohorts(SUBJECTS, seed=4).train

    def test_partition_is_disjoint_and_complete(self):
        """Test disjoint cohorts covering every subject."""
        split = split_cohorts(SUBJECTS, train_fraction=0.3, seed=1)
        assert len(split.train) == 30
        assert len(split.test) == 70
        assert not set(split.train) & set(split.test)
        assert set(split.train) | set(split.test) == set(SUBJECTS)
        assert split.seed == 1

    def test_exact_training_size(self):
        """Test an exact 129/129 split of 258 subjects."""
        subjects = [f'M{i:03d}' for i in range(258)]
        split = split_cohorts(subjects, n_train=129, seed=0)
        assert len(split.train) == len(split.test) == 129

    def test_default_fraction_halves(self):
        """Test the default training fraction."""
        split = split_cohorts([f'M{i:03d}' for i in range(258)])
        assert len(split.train) == 129

    def test_duplicate_subjects(self):
        """Test ValueError for duplicate subject ids."""
        with pytest.raises(ValueError, match='unique'):
            split_cohorts(['F001', 'F002', 'F001'])

    def test_too_few_subjects(self):
        """Test ValueError when fewer than two subjects are given."""
        with pytest.raises(ValueError):
            split_cohorts(['F001'])


class TestCohortSplit:

    def test_overlap_rejected(self):
        """Test that overlapping cohorts are rejected."""
        with pytest.raises(ValueError, match='overlap'):
            CohortSplit(train=('F001', 'F002'), test=('F002', 'F003'), seed=None)

    def test_as_frame(self):
        """Test the subject-to-cohort export table."""
        split = CohortSplit(train=('F001', 'F002'), test=('M003',), seed=0)
        frame = split.as_frame()
        assert list(frame.columns) == ['subject', 'cohort']
        assert list(frame['cohort']) == ['train', 'train', 'test']


class TestMatrices:

    @pytest.fixture
    def table(self):
        return pd.DataFrame({
            'a': [1.0, 2.0, np.nan, 4.0],
            'b': [0.5, np.nan, 1.5, 2.5],
            'c': [9.0, 8.0, 7.0, 6.0],
        }, index=['F1', 'F2', 'F3', 'F4'])

    def test_complete_subjects(self, table):
        """Test selection of subjects with all required values."""
        assert complete_subjects(table) == ['F1', 'F4']
        assert complete_subjects(table, ['a', 'c']) == ['F1', 'F2', 'F4']

    def test_build_matrix_order(self, table):
        """Test that rows and columns follow the requested order."""
        matrix = build_matrix(table, ['F4', 'F1'], ['c', 'a'])
        assert list(matrix.index) == ['F4', 'F1']
        assert list(matrix.columns) == ['c', 'a']
        assert matrix.loc['F4', 'a'] == 4.0

    def test_build_matrix_missing_cell(self, table):
        """Test MissingValue for a NaN cell."""
        with pytest.raises(MissingValue):
            build_matrix(table, ['F1', 'F2'], ['a', 'b'])

    def test_build_matrix_absent_subject(self, table):
        """Test MissingValue for a subject absent from the table."""
        with pytest.raises(MissingValue, match='F9'):
            build_matrix(table, ['F1', 'F9'], ['a'])

    def test_build_matrix_absent_column(self, table):
        """Test ValueError for an absent trait column."""
        with pytest.raises(ValueError, match='Missing required columns'):
            build_matrix(table, ['F1'], ['a', 'z'])
