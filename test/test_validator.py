"""
Tests for pre-CCA input validation.
"""

import numpy as np
import pytest

from reftrait.cohort import split_cohorts
from reftrait.errors import MissingValue, SingularInput
from reftrait.validator import CCAInputValidator


class TestCCAInputValidator:

    def test_valid_inputs(self, simulated, tmp_path):
        """Test a passing report on a valid simulated cohort."""
        split = split_cohorts(simulated['reference'].index, seed=0)
        validator = CCAInputValidator(simulated['reference'], simulated['target'], split)

        report_path = tmp_path / 'validation_report.txt'
        report = validator.generate_validation_report(str(report_path))

        assert report['overall_status']['is_valid']
        assert report['sample_size']['n_complete'] == 129
        assert report['cohorts']['n_overlap'] == 0
        assert not validator.failures
        assert 'PASSED' in report_path.read_text(encoding='utf-8')

    def test_training_cohort_not_larger_than_p_plus_q(self, simulated):
        """Test SingularInput when training n does not exceed p + q."""
        split = split_cohorts(simulated['reference'].index, n_train=5, seed=0)
        validator = CCAInputValidator(simulated['reference'], simulated['target'], split)
        with pytest.raises(SingularInput):
            validator.validate_sample_size()

    def test_training_cohort_below_minimum(self, simulated):
        """Test ValueError below the configured minimum training size."""
        split = split_cohorts(simulated['reference'].index, n_train=12, seed=0)
        validator = CCAInputValidator(simulated['reference'], simulated['target'], split)
        with pytest.raises(ValueError) as excinfo:
            validator.validate_sample_size()
        assert not isinstance(excinfo.value, SingularInput)
        assert validator.validation_report['sample_size']['minimum_required'] == 30

    def test_constant_trait(self, simulated):
        """Test SingularInput for a constant training trait."""
        reference = simulated['reference'].copy()
        reference['reference_2'] = 1.0
        split = split_cohorts(reference.index, seed=0)
        validator = CCAInputValidator(reference, simulated['target'], split)
        with pytest.raises(SingularInput, match='reference_2'):
            validator.validate_variance()

    def test_incomplete_test_subject(self, simulated):
        """Test MissingValue for a test subject lacking reference traits."""
        reference = simulated['reference'].copy()
        split = split_cohorts(reference.index, seed=0)
        reference.loc[split.test[0], 'reference_1'] = np.nan
        validator = CCAInputValidator(reference, simulated['target'], split)
        with pytest.raises(MissingValue, match=split.test[0]):
            validator.validate_cohorts()

    def test_incomplete_training_subject(self, simulated):
        """Test MissingValue for an incomplete training subject."""
        target = simulated['target'].copy()
        split = split_cohorts(target.index, seed=0)
        target.loc[split.train[0], 'target_3'] = np.nan
        validator = CCAInputValidator(simulated['reference'], target, split)
        with pytest.raises(MissingValue):
            validator.validate_cohorts()

    def test_report_collects_failures(self, simulated, tmp_path):
        """Test that the report records every failed check."""
        reference = simulated['reference'].copy()
        reference['reference_2'] = 1.0
        split = split_cohorts(reference.index, n_train=5, seed=0)
        validator = CCAInputValidator(reference, simulated['target'], split)

        report_path = tmp_path / 'report.txt'
        report = validator.generate_validation_report(str(report_path))

        assert not report['overall_status']['is_valid']
        assert set(validator.failures) == {'sample_size', 'variance'}
        assert isinstance(validator.failures['sample_size'], SingularInput)
        text = report_path.read_text(encoding='utf-8')
        assert 'FAILED' in text
        assert 'variance' in text

    def test_audit_data_structure(self, simulated):
        """Test the per-trait completeness audit."""
        target = simulated['target'].copy()
        target.iloc[:10, 0] = np.nan
        split = split_cohorts(target.index, seed=0)
        validator = CCAInputValidator(simulated['reference'], target, split)
        audit = validator.audit_data_structure()

        assert len(audit) == 5
        row = audit[audit['trait'] == 'target_1'].iloc[0]
        assert row['n_missing'] == 10
        assert row['completeness_rate'] == pytest.approx(1 - 10 / 258)
        assert validator.validation_report['data_structure']['incomplete_traits'] == ['target_1']
