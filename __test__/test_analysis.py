"""Tests for the regression battery, exports and the end-to-end pipeline."""

import pandas as pd
import pytest

from hiv_mortality import analysis
from hiv_mortality.analysis import (
    compare_battery, export_results, run_model_battery, select_specs, summarize_battery
)
from hiv_mortality.config import DataParameters, ModelParameters, PipelineConfig
from hiv_mortality.features import derive_features
from hiv_mortality.model import LINEAR_A, POISSON_A, fit_model
from hiv_mortality.preprocess import DataProcessor

from main import HivMortalityAnalysis
from conftest import make_maindata

SMALL_GRID_CONFIG = PipelineConfig(data=DataParameters(first_year=1990, last_year=1991))


class TestSelectSpecs:
    """Test cases for choosing battery models."""

    def test_default_is_full_battery(self):
        assert len(select_specs()) == 8

    def test_by_family(self):
        specs = select_specs(family='poisson')
        assert [spec.name for spec in specs] == ['poisson_a', 'poisson_b', 'poisson_c', 'poisson_d']

    def test_by_name(self):
        specs = select_specs(['linear_b', 'poisson_a'], family='gaussian')
        assert [spec.name for spec in specs] == ['linear_b']

    def test_unknown_name_raises(self):
        with pytest.raises(ValueError):
            select_specs(['linear_e'])


class TestModelBattery:
    """Test cases for fitting and comparing the full battery."""

    def test_full_battery(self, regression_df):
        """Should fit all eight models and compare all six nested pairs."""
        results = run_model_battery(regression_df)
        comparisons = compare_battery(results)

        assert len(results) == 8
        assert len(comparisons) == 6
        assert set(comparisons['test']) == {'F', 'Chisq'}
        assert comparisons['p_value'].between(0, 1).all()

    def test_config_selects_models(self, regression_df):
        config = PipelineConfig(model=ModelParameters(models=['linear_a', 'linear_b']))

        results = run_model_battery(regression_df, config)

        assert list(results) == ['linear_a', 'linear_b']
        assert len(compare_battery(results)) == 1

    def test_failed_model_is_skipped(self, regression_df):
        """Should keep going when a model cannot be fitted."""
        without_country = regression_df.drop(columns=['country_name'])

        results = run_model_battery(without_country)

        assert 'linear_d' not in results and 'poisson_d' not in results
        assert len(results) == 6
        assert len(compare_battery(results)) == 4

    def test_fail_on_error_raises(self, regression_df):
        """Should re-raise the fitting error when asked to."""
        without_country = regression_df.drop(columns=['country_name'])

        with pytest.raises(ValueError, match="country_name"):
            run_model_battery(without_country, fail_on_error=True)

    def test_mismatched_rows_are_not_compared(self, regression_df):
        """Should skip a pair fitted on different rows instead of failing."""
        results = {
            'linear_a': fit_model(regression_df, LINEAR_A),
            'linear_b': fit_model(regression_df.iloc[:-4], select_specs(['linear_b'])[0]),
        }

        assert compare_battery(results).empty

    def test_summary_rows(self, regression_df):
        results = run_model_battery(regression_df, specs=[LINEAR_A, POISSON_A])

        summary = summarize_battery(results)

        assert list(summary['model']) == ['linear_a', 'poisson_a']
        assert summary.loc[0, 'nobs'] == len(regression_df)


class TestExport:
    """Test cases for the exported tables."""

    def test_export_results(self, regression_df, tmp_path):
        """Should write one coefficient file per model plus the summaries."""
        results = run_model_battery(regression_df)
        export_results(results, compare_battery(results), tmp_path)

        for name in results:
            coefs = pd.read_csv(tmp_path / f"coefficients_{name}.csv")
            assert coefs['term'].iloc[0] == 'Intercept'
        assert len(pd.read_csv(tmp_path / "model_summary.csv")) == 8
        assert len(pd.read_csv(tmp_path / "model_comparisons.csv")) == 6

    def test_analysis_main(self, tmp_path):
        """Should run the battery from a maindata.csv file."""
        maindata_path = tmp_path / "maindata.csv"
        make_maindata().to_csv(maindata_path, index=False)
        output_dir = tmp_path / "output"
        config = PipelineConfig(model=ModelParameters(models=['linear_a', 'linear_b']))

        results = analysis.main(maindata_path, output_dir, config)

        assert list(results) == ['linear_a', 'linear_b']
        assert (output_dir / "mortality_summary.csv").exists()
        assert (output_dir / "coefficients_linear_b.csv").exists()

    def test_analysis_main_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            analysis.main(tmp_path / "maindata.csv", tmp_path)


class TestEndToEnd:
    """Test cases running from raw input files."""

    def test_raw_files_to_model(self, raw_data_dir, tmp_path):
        """Should merge the small grid into one row per stratum and fit model A."""
        maindata = DataProcessor(raw_data_dir, tmp_path, SMALL_GRID_CONFIG.data).run_all_processing()
        regression_df = derive_features(maindata)

        result = fit_model(regression_df, LINEAR_A)

        assert len(maindata) == 16
        assert result.nobs == 16
        assert len(result.coefficients) == 5
        assert result.coefficients['estimate'].notna().all()

    def test_pipeline_class(self, raw_data_dir, tmp_path):
        """Should process data, fit models and draw figures into the given directories."""
        pipeline = HivMortalityAnalysis(
            data_dir=str(raw_data_dir),
            intermediate_dir=str(tmp_path / "intermediate"),
            output_dir=str(tmp_path / "output"),
            figures_dir=str(tmp_path / "figures"),
            config=SMALL_GRID_CONFIG,
        )

        pipeline.process_data()
        results = pipeline.run_models(family='gaussian')
        pipeline.create_exploratory_plots()

        assert 'linear_a' in results
        assert all(spec.family == 'gaussian' for spec in (r.spec for r in results.values()))
        assert (tmp_path / "intermediate" / "maindata.csv").exists()
        assert (tmp_path / "output" / "coefficients_linear_a.csv").exists()
        assert (tmp_path / "output" / "mortality_summary.csv").exists()
        for name in ("mortality_histogram.pdf", "log_mortality_histogram.pdf", "mortality_trends.pdf"):
            assert (tmp_path / "figures" / name).exists()
