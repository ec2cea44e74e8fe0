#!/usr/bin/env python3
"""
Main Execution Script for the HIV Mortality Analysis

This script provides a unified interface for running the whole pipeline:
merging the raw inputs, fitting the regression battery and drawing the
report figures.
"""

import argparse
from pathlib import Path
import pandas as pd
from typing import Dict, List, Optional

from hiv_mortality.analysis import (
    compare_battery, export_results, print_coefficients,
    run_model_battery, select_specs
)
from hiv_mortality.config import PipelineConfig, ModelParameters
from hiv_mortality.features import derive_features, summarize_mortality
from hiv_mortality.model import ModelResult
from hiv_mortality.paths import DATA_DIR, INTERMEDIATE_DIR, OUTPUT_DIR, FIGURES_DIR, CommonPaths
from hiv_mortality.plot import plot_mortality_histograms, plot_mortality_trends
from hiv_mortality.preprocess import DataProcessor, load_maindata


class HivMortalityAnalysis:
    """Main analysis class that coordinates all components"""

    def __init__(self, data_dir: str = str(DATA_DIR),
                 intermediate_dir: str = str(INTERMEDIATE_DIR),
                 output_dir: str = str(OUTPUT_DIR),
                 figures_dir: str = str(FIGURES_DIR),
                 config: Optional[PipelineConfig] = None):
        """
        Initialize the analysis

        Args:
            data_dir: Directory containing raw input files
            intermediate_dir: Directory for maindata.csv
            output_dir: Directory for output tables
            figures_dir: Directory for figures
            config: Pipeline configuration
        """
        self.data_dir = Path(data_dir)
        self.intermediate_dir = Path(intermediate_dir)
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.figures_dir = Path(figures_dir)
        self.figures_dir.mkdir(parents=True, exist_ok=True)
        self.paths = CommonPaths(self.data_dir, self.intermediate_dir, self.output_dir, self.figures_dir)
        self.config = config or PipelineConfig()

    def _export_results(self, results: pd.DataFrame, output_file: Path):
        """Export results to CSV file"""
        results.to_csv(output_file, index=False)
        print(f"Results exported to {output_file}")

    def process_data(self) -> pd.DataFrame:
        """Merge the raw inputs and write maindata.csv."""
        processor = DataProcessor(self.data_dir, self.intermediate_dir, self.config.data)
        return processor.run_all_processing()

    def load_regression_table(self) -> pd.DataFrame:
        """Read maindata.csv and derive the regression features."""
        maindata = load_maindata(self.paths.maindata)
        return derive_features(maindata, self.config.features)

    def run_models(self, family: Optional[str] = None,
                   fail_on_error: bool = False,
                   verbose: bool = False) -> Dict[str, ModelResult]:
        """
        Fit the regression battery and export coefficients and comparisons.

        Args:
            family: 'gaussian' or 'poisson' to fit one family, None for both
            fail_on_error: Whether to raise if a model fails to fit
            verbose: Whether to print coefficient tables

        Returns:
            Fitted results keyed by model name
        """
        print("Running regression analysis...")
        regression_df = self.load_regression_table()
        self._export_results(summarize_mortality(regression_df), self.paths.mortality_summary)

        specs = select_specs(self.config.model.models or None, family)
        results = run_model_battery(regression_df, self.config, specs, fail_on_error)
        comparisons = compare_battery(results)
        if verbose:
            for result in results.values():
                print_coefficients(result)
        export_results(results, comparisons, self.output_dir)
        return results

    def create_exploratory_plots(self) -> None:
        """Draw the mortality histograms and trend plot."""
        print("Creating exploratory plots...")
        regression_df = self.load_regression_table()
        plot_mortality_histograms(regression_df, self.figures_dir)
        plot_mortality_trends(regression_df, self.figures_dir)
        print(f"Exploratory plots saved to {self.figures_dir}")


FAMILY_CHOICES = {'all': None, 'linear': 'gaussian', 'poisson': 'poisson'}


def main(argv: Optional[List[str]] = None):
    """Main function"""
    parser = argparse.ArgumentParser(description="HIV Mortality Analysis")
    parser.add_argument("--process_data", action="store_true", help="Merge raw input data into maindata.csv")
    parser.add_argument("--analysis", choices=['all', 'linear', 'poisson', 'none'],
                        default='all', help="Which model family to fit")
    parser.add_argument("--models", type=str, default=None, help="Comma-separated list of models to fit")
    parser.add_argument("--log_zero_policy", choices=['placeholder', 'drop'], default='placeholder',
                        help="Handling of -inf log mortality (zero deaths)")
    parser.add_argument("--create_exploratory", action="store_true", help="Create exploratory plots")
    parser.add_argument("--data_dir", type=str, default=str(DATA_DIR), help="Directory with raw input files")
    parser.add_argument("--fail_on_error", action="store_true", help="Fail on error")
    parser.add_argument("--verbose", action="store_true", help="Print pipeline parameters and coefficient tables")

    args = parser.parse_args(argv)

    models = args.models.split(',') if args.models else []
    config = PipelineConfig(model=ModelParameters(log_zero_policy=args.log_zero_policy, models=models))
    analysis = HivMortalityAnalysis(data_dir=args.data_dir, config=config)
    if args.verbose:
        config.describe_all()

    # Merge raw input data (creating maindata.csv)
    if args.process_data:
        analysis.process_data()

    # Create exploratory plots
    if args.create_exploratory:
        analysis.create_exploratory_plots()

    # Run specified analysis
    if args.analysis != 'none':
        analysis.run_models(FAMILY_CHOICES[args.analysis], args.fail_on_error, args.verbose)

    print("Analysis completed successfully!")


if __name__ == "__main__":
    main()
