"""
Tests for loading phenotype and feature tables from delimited files.
"""

import pandas as pd
import pytest

from reftrait.data_loader import (
    ReferenceTraitDataLoader,
    read_feature_table,
    read_phenotype_table,
)


@pytest.fixture
def trait_files(tmp_path):
    reference = pd.DataFrame(
        {'center_fraction': [0.1, 0.2, 0.3], 'distance_cm': [100.0, 250.0, 180.0]},
        index=pd.Index(['F001', 'M002', 'F003'], name='mouse')
    )
    target = pd.DataFrame(
        {'open_arm_fraction': [0.4, 0.5], 'latency_s': [12, 30]},
        index=pd.Index(['F001', 'M002'], name='mouse')
    )
    expression = pd.DataFrame(
        [[1.0, 2.0, 3.0], [0.5, 0.1, 0.9]],
        index=pd.Index(['Gad1', 'Crh'], name='gene'),
        columns=['F001', 'M002', 'F003']
    )

    paths = {
        'reference': tmp_path / 'reference.csv',
        'target': tmp_path / 'target.tsv',
        'expression': tmp_path / 'expression.txt',
    }
    reference.to_csv(paths['reference'])
    target.to_csv(paths['target'], sep='\t')
    expression.to_csv(paths['expression'], sep='\t')
    return paths


class TestReadPhenotypeTable:

    def test_csv(self, trait_files):
        """Test reading a comma-separated phenotype table."""
        table = read_phenotype_table(trait_files['reference'])
        assert table.index.name == 'subject'
        assert list(table.index) == ['F001', 'M002', 'F003']
        assert list(table.columns) == ['center_fraction', 'distance_cm']
        assert (table.dtypes == float).all()

    def test_tsv_integer_columns_become_float(self, trait_files):
        """Test tab-separated input and float conversion."""
        table = read_phenotype_table(trait_files['target'])
        assert table.loc['M002', 'latency_s'] == 30.0
        assert table['latency_s'].dtype == float

    def test_column_selection(self, trait_files):
        """Test keeping only the requested traits."""
        table = read_phenotype_table(trait_files['reference'], columns=['distance_cm'])
        assert list(table.columns) == ['distance_cm']

    def test_missing_column(self, trait_files):
        """Test ValueError for a requested trait that is absent."""
        with pytest.raises(ValueError, match='Missing required columns'):
            read_phenotype_table(trait_files['reference'], columns=['immobility_s'])

    def test_missing_file(self, tmp_path):
        """Test FileNotFoundError for a missing table."""
        with pytest.raises(FileNotFoundError):
            read_phenotype_table(tmp_path / 'absent.csv')

    def test_duplicate_subjects(self, tmp_path):
        """Test ValueError for duplicate subject ids."""
        path = tmp_path / 'dup.csv'
        pd.DataFrame({'x': [1.0, 2.0]}, index=['F001', 'F001']).to_csv(path)
        with pytest.raises(ValueError, match='Duplicate'):
            read_phenotype_table(path)

    def test_non_numeric_trait(self, tmp_path):
        """Test ValueError for a non-numeric trait column."""
        path = tmp_path / 'text.csv'
        pd.DataFrame({'x': ['high', 'low']}, index=['F001', 'M002']).to_csv(path)
        with pytest.raises(ValueError, match='Non-numeric'):
            read_phenotype_table(path)

    def test_numeric_subject_ids_are_strings(self, tmp_path):
        """Test that numeric subject ids are read as strings."""
        path = tmp_path / 'numeric.csv'
        pd.DataFrame({'x': [1.0, 2.0]}, index=[101, 102]).to_csv(path)
        table = read_phenotype_table(path)
        assert list(table.index) == ['101', '102']


class TestReadFeatureTable:

    def test_feature_by_subject(self, trait_files):
        """Test reading a feature-by-subject table."""
        table = read_feature_table(trait_files['expression'])
        assert table.index.name == 'feature'
        assert list(table.index) == ['Gad1', 'Crh']
        assert list(table.columns) == ['F001', 'M002', 'F003']
        assert table.loc['Crh', 'M002'] == pytest.approx(0.1)

    def test_missing_file(self, tmp_path):
        """Test FileNotFoundError for a missing feature table."""
        with pytest.raises(FileNotFoundError):
            read_feature_table(tmp_path / 'absent.tsv')


class TestReferenceTraitDataLoader:

    def test_load_all(self, trait_files):
        """Test loading all three inputs together."""
        loader = ReferenceTraitDataLoader(
            trait_files['reference'], trait_files['target'], trait_files['expression']
        )
        data = loader.load_all()

        assert set(data) == {'reference', 'target', 'expression'}
        assert data['reference'].shape == (3, 2)
        assert data['target'].shape == (2, 2)
        assert data['expression'].shape == (2, 3)
        assert loader.reference_data is data['reference']

    def test_shared_trait_columns_rejected(self, trait_files, tmp_path):
        """Test ValueError when trait sets share columns."""
        clash = tmp_path / 'clash.csv'
        pd.DataFrame({'distance_cm': [1.0, 2.0]}, index=['F001', 'M002']).to_csv(clash)
        loader = ReferenceTraitDataLoader(
            trait_files['reference'], clash, trait_files['expression']
        )
        with pytest.raises(ValueError, match='share trait columns'):
            loader.load_all()
