"""
CCA input validator for reference trait analysis.

Validates the training and test cohorts before fitting so problems surface
with a clear message instead of a failing decomposition:
1. Training sample size exceeds p + q and the configured minimum
2. No zero-variance trait in the training cohort
3. Training and Test cohorts are disjoint and fully observed
4. Per-trait completeness across all subjects
"""

import logging
from pathlib import Path
from typing import Dict

import pandas as pd

from reftrait import config
from reftrait.cohort import CohortSplit
from reftrait.errors import MissingValue, SingularInput


class CCAInputValidator:
    """
    Validator for CCA inputs.

    Attributes:
        reference: Subject-indexed reference trait table
        target: Subject-indexed target trait table
        split: Training/Test partition
        validation_report: Dict storing validation results
        failures: Exceptions raised by failed checks, keyed by check name
        logger: Logger instance

    Example:
        >>> validator = CCAInputValidator(reference_df, target_df, split)
        >>> validator.validate_sample_size()
        >>> validator.validate_variance()
        >>> validator.validate_cohorts()
        >>> report = validator.generate_validation_report('results/validation_report.txt')
    """

    def __init__(self, reference: pd.DataFrame, target: pd.DataFrame, split: CohortSplit):
        self.reference = reference
        self.target = target
        self.split = split
        self.validation_report = {}
        self.failures: Dict[str, ValueError] = {}
        self.logger = logging.getLogger(__name__)

    def _training_complete(self) -> pd.Index:
        train = pd.Index(self.split.train)
        train = train.intersection(self.reference.index).intersection(self.target.index)
        complete = (
            self.reference.loc[train].notna().all(axis=1) &
            self.target.loc[train].notna().all(axis=1)
        )
        return train[complete.to_numpy()]

    def validate_sample_size(self) -> Dict:
        """
        Validate that the training cohort is large enough for CCA.

        Returns:
            Dict with n_train, n_complete, p, q, minimum_required, is_sufficient

        Raises:
            SingularInput: n_complete <= p + q
            ValueError: n_complete below MINIMUM_TRAINING_N
        """
        self.logger.info("Validating sample size...")

        p = self.reference.shape[1]
        q = self.target.shape[1]
        n_complete = len(self._training_complete())
        minimum = max(config.MINIMUM_TRAINING_N, p + q + 1)

        result = {
            'n_train': len(self.split.train),
            'n_complete': int(n_complete),
            'p': p,
            'q': q,
            'minimum_required': minimum,
            'is_sufficient': n_complete >= minimum
        }
        self.validation_report['sample_size'] = result

        if n_complete <= p + q:
            self.logger.error(f"  ✗ Sample size insufficient: N = {n_complete} <= p+q = {p + q}")
            raise SingularInput(
                f"Insufficient training observations for CCA: N = {n_complete} "
                f"must exceed p+q = {p + q}"
            )
        if n_complete < minimum:
            self.logger.error(f"  ✗ Sample size insufficient: N = {n_complete} < {minimum}")
            raise ValueError(
                f"Insufficient sample size for CCA: N = {n_complete} < {minimum}"
            )

        self.logger.info(
            f"  ✓ Sample size sufficient: N = {n_complete} (p={p}, q={q})"
        )
        return result

    def validate_variance(self) -> Dict:
        """
        Validate that no trait is constant in the training cohort.

        Raises:
            SingularInput: One or more zero-variance traits
        """
        self.logger.info("Validating trait variance...")

        train = self._training_complete()
        stds = pd.concat([
            self.reference.loc[train].std(ddof=1),
            self.target.loc[train].std(ddof=1)
        ])
        constant = stds[~(stds > config.VARIANCE_TOLERANCE)].index.tolist()

        result = {
            'trait_std': stds.to_dict(),
            'constant_traits': constant,
            'is_valid': not constant
        }
        self.validation_report['variance'] = result

        if constant:
            self.logger.error(f"  ✗ Zero-variance traits in training cohort: {constant}")
            raise SingularInput(f"Zero-variance traits in training cohort: {constant}")

        self.logger.info(f"  ✓ All {len(stds)} traits vary in the training cohort")
        return result

    def validate_cohorts(self) -> Dict:
        """
        Validate the partition: disjoint cohorts, complete training data and
        complete reference traits for every test subject.

        Raises:
            MissingValue: Training subjects lacking any trait, or test
                subjects lacking reference traits
        """
        self.logger.info("Validating cohorts...")

        train = pd.Index(self.split.train)
        test = pd.Index(self.split.test)

        incomplete_train = train.difference(self._training_complete()).tolist()
        test_known = test.intersection(self.reference.index)
        incomplete_test = test.difference(test_known).tolist() + [
            s for s in test_known
            if self.reference.loc[s].isna().any()
        ]

        result = {
            'n_train': len(train),
            'n_test': len(test),
            'n_overlap': len(train.intersection(test)),
            'incomplete_train': sorted(incomplete_train),
            'incomplete_test': sorted(incomplete_test),
            'is_valid': not incomplete_train and not incomplete_test
        }
        self.validation_report['cohorts'] = result

        if incomplete_train:
            self.logger.error(f"  ✗ {len(incomplete_train)} training subjects incomplete")
            raise MissingValue(
                f"Training subjects with missing traits: {sorted(incomplete_train)[:5]}"
            )
        if incomplete_test:
            self.logger.error(f"  ✗ {len(incomplete_test)} test subjects incomplete")
            raise MissingValue(
                f"Test subjects with missing reference traits: {sorted(incomplete_test)[:5]}"
            )

        self.logger.info(f"  ✓ Cohorts valid: {len(train)} train, {len(test)} test")
        return result

    def audit_data_structure(self) -> pd.DataFrame:
        """
        Per-trait completeness over all subjects in each table.

        Returns:
            DataFrame with columns table, trait, n_subjects, n_missing,
            completeness_rate
        """
        self.logger.info("Auditing data structure...")

        audit_results = []
        for table_name, table in (('reference', self.reference), ('target', self.target)):
            for trait in table.columns:
                n_missing = int(table[trait].isna().sum())
                n_subjects = len(table)
                audit_results.append({
                    'table': table_name,
                    'trait': trait,
                    'n_subjects': n_subjects,
                    'n_missing': n_missing,
                    'completeness_rate': 1 - n_missing / n_subjects if n_subjects else 0.0
                })

        audit_df = pd.DataFrame(audit_results)

        self.validation_report['data_structure'] = {
            'n_traits': len(audit_df),
            'mean_completeness_rate': float(audit_df['completeness_rate'].mean()),
            'incomplete_traits': audit_df.loc[
                audit_df['completeness_rate'] < 1.0, 'trait'
            ].tolist()
        }

        mean_completeness = audit_df['completeness_rate'].mean()
        self.logger.info(f"  Data structure audit complete (mean completeness: "
                         f"{mean_completeness:.1%})")

        return audit_df

    def generate_validation_report(self, output_path: str = None) -> Dict:
        """
        Run all checks and compile them into one report.

        Checks that raise are recorded as failed; the report is still
        written so the operator can see every problem at once.

        Args:
            output_path: Optional path to save report as text file

        Returns:
            validation_report: Dict with all validation results
        """
        self.logger.info("Generating validation report...")

        errors = {}
        for name, check in (('sample_size', self.validate_sample_size),
                            ('variance', self.validate_variance),
                            ('cohorts', self.validate_cohorts)):
            if name in self.validation_report:
                continue
            try:
                check()
            except ValueError as e:
                self.failures[name] = e
                errors[name] = str(e)

        if 'data_structure' not in self.validation_report:
            self.audit_data_structure()

        all_valid = not errors and all(
            self.validation_report.get(name, {}).get(key, False)
            for name, key in (('sample_size', 'is_sufficient'),
                              ('variance', 'is_valid'),
                              ('cohorts', 'is_valid'))
        )

        self.validation_report['overall_status'] = {
            'is_valid': all_valid,
            'ready_for_cca': all_valid,
            'errors': errors
        }

        if output_path:
            self._write_text_report(output_path)

        if all_valid:
            self.logger.info("  ✓ All validations passed - data ready for CCA")
        else:
            self.logger.error("  ✗ Validation failed - data not ready for CCA")

        return self.validation_report

    def _write_text_report(self, output_path: str):
        output_file = Path(output_path)
        output_file.parent.mkdir(parents=True, exist_ok=True)

        report = self.validation_report
        status = report['overall_status']

        with open(output_file, 'w', encoding='utf-8') as f:
            f.write("=" * 80 + "\n")
            f.write("REFERENCE TRAIT CCA VALIDATION REPORT\n")
            f.write("=" * 80 + "\n\n")

            f.write("OVERALL STATUS\n")
            f.write("-" * 80 + "\n")
            if status['is_valid']:
                f.write("✓ PASSED - Data are valid and ready for CCA analysis\n\n")
            else:
                f.write("✗ FAILED - Data validation issues detected\n")
                for name, message in status['errors'].items():
                    f.write(f"  - {name}: {message}\n")
                f.write("\n")

            if 'sample_size' in report:
                ssize = report['sample_size']
                f.write("SAMPLE SIZE\n")
                f.write("-" * 80 + "\n")
                f.write(f"Training subjects: {ssize['n_train']}\n")
                f.write(f"Complete training subjects: {ssize['n_complete']}\n")
                f.write(f"Reference traits (p): {ssize['p']}\n")
                f.write(f"Target traits (q): {ssize['q']}\n")
                f.write(f"Minimum required: {ssize['minimum_required']}\n")
                f.write(f"Status: {'✓ SUFFICIENT' if ssize['is_sufficient'] else '✗ INSUFFICIENT'}\n\n")

            if 'variance' in report:
                var = report['variance']
                f.write("TRAIT VARIANCE (training cohort)\n")
                f.write("-" * 80 + "\n")
                for trait, std in var['trait_std'].items():
                    f.write(f"{trait}: SD = {std:.4g}\n")
                f.write(f"Status: {'✓ VALID' if var['is_valid'] else '✗ CONSTANT TRAITS'}\n\n")

            if 'cohorts' in report:
                coh = report['cohorts']
                f.write("COHORTS\n")
                f.write("-" * 80 + "\n")
                f.write(f"Training: {coh['n_train']}  Test: {coh['n_test']}  "
                        f"Overlap: {coh['n_overlap']}\n")
                if coh['incomplete_train']:
                    f.write(f"Incomplete training subjects: {', '.join(coh['incomplete_train'])}\n")
                if coh['incomplete_test']:
                    f.write(f"Incomplete test subjects: {', '.join(coh['incomplete_test'])}\n")
                f.write("\n")

            dstruct = report['data_structure']
            f.write("DATA STRUCTURE\n")
            f.write("-" * 80 + "\n")
            f.write(f"Traits audited: {dstruct['n_traits']}\n")
            f.write(f"Mean completeness rate: {dstruct['mean_completeness_rate']:.1%}\n")
            if dstruct['incomplete_traits']:
                f.write(f"Traits with missing values: {', '.join(dstruct['incomplete_traits'])}\n")
            f.write("\n")

            f.write("=" * 80 + "\n")

        self.logger.info(f"  Validation report saved to {output_file}")
