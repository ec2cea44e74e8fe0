#!/usr/bin/env python3
"""Analysis Module.

Runs the regression battery on the merged HIV mortality data: derives the
regression features, fits every model, compares nested model
pairs and exports the tables the report is built from.

Example:
    >>> from hiv_mortality.analysis import run_model_battery, compare_battery
    >>> results = run_model_battery(regression_df)
    >>> comparisons = compare_battery(results)
    >>> comparisons[['reduced', 'full', 'statistic', 'p_value']]

Outputs (in OUTPUT_DIR):
    coefficients_<model>.csv: One coefficient table per fitted model.
    model_summary.csv: Fit statistics, one row per model.
    model_comparisons.csv: F / likelihood-ratio tests of nested pairs.
    mortality_summary.csv: Descriptive mortality statistics.
"""

import argparse
import pandas as pd
from pathlib import Path
from typing import Dict, List, Optional
from tqdm import tqdm

from hiv_mortality.config import PipelineConfig, ModelParameters
from hiv_mortality.features import derive_features, summarize_mortality
from hiv_mortality.model import (
    MODEL_BATTERY, NESTED_PAIRS, ModelResult, ModelSpec,
    compare_nested, fit_model, fit_statistics, get_spec
)
from hiv_mortality.paths import OUTPUT_DIR, CommonPaths, paths
from hiv_mortality.preprocess import load_maindata


def select_specs(names: Optional[List[str]] = None,
                 family: Optional[str] = None) -> List[ModelSpec]:
    """Battery models filtered by name and/or family."""
    specs = [get_spec(name) for name in names] if names else list(MODEL_BATTERY)
    if family is not None:
        specs = [spec for spec in specs if spec.family == family]
    return specs


def run_model_battery(regression_df: pd.DataFrame,
                      config: Optional[PipelineConfig] = None,
                      specs: Optional[List[ModelSpec]] = None,
                      fail_on_error: bool = False) -> Dict[str, ModelResult]:
    """Fit each model to the regression table.

    Every model uses the same non-finite policy from `config.model`.

    Args:
        regression_df: Output of `derive_features`
        config: Pipeline configuration
        specs: Specifications to fit (default: battery selected by config)
        fail_on_error: Whether to raise if a model fails to fit

    Returns:
        Fitted results keyed by model name; failed models are missing.
    """
    config = config or PipelineConfig()
    specs = specs if specs is not None else select_specs(config.model.models or None)

    print(f"Fitting {len(specs)} models (log-zero policy: {config.model.log_zero_policy})")
    results = {}
    for spec in tqdm(specs, desc="Fitting models"):
        try:
            result = fit_model(regression_df, spec, config)
        except Exception as e:
            print(f"  Error fitting {spec.name}: {e}")
            if fail_on_error:
                raise
            continue

        if result.dropped_rows:
            print(f"  {spec.name}: dropped {result.dropped_rows} incomplete or non-finite rows")
        if result.aliased:
            print(f"Warning: {spec.name} has {len(result.aliased)} non-identifiable terms "
                  f"(reported as NaN), e.g. {result.aliased[:3]}")
        results[spec.name] = result
    return results


def compare_battery(results: Dict[str, ModelResult]) -> pd.DataFrame:
    """Compare each consecutive nested pair of fitted models (A/B, B/C, C/D)."""
    rows = []
    for reduced, full in NESTED_PAIRS:
        if reduced not in results or full not in results:
            continue
        try:
            rows.append(compare_nested(results[reduced], results[full]))
        except ValueError as e:
            print(f"Warning: skipping comparison {reduced} vs {full}: {e}")
    return pd.DataFrame(rows)


def summarize_battery(results: Dict[str, ModelResult]) -> pd.DataFrame:
    """Fit statistics, one row per model."""
    return pd.DataFrame([fit_statistics(result) for result in results.values()])


def export_results(results: Dict[str, ModelResult],
                   comparisons: pd.DataFrame,
                   output_dir: Path = OUTPUT_DIR) -> None:
    """Write coefficient tables, the fit summary and model comparisons to CSV."""
    layout = CommonPaths(output_dir=output_dir)
    layout.output_dir.mkdir(parents=True, exist_ok=True)
    for name, result in results.items():
        result.coefficients.to_csv(layout.coefficients(name), index=False)
    summarize_battery(results).to_csv(layout.model_summary, index=False)
    comparisons.to_csv(layout.model_comparisons, index=False)
    print(f"Results exported to {output_dir}")


def print_coefficients(result: ModelResult, max_rows: int = 20) -> None:
    """Print the leading rows of a coefficient table."""
    columns = ['term', 'estimate', 'std_error', 'p_value']
    if 'exp_estimate' in result.coefficients.columns:
        columns.append('exp_estimate')
    print(f"\n{result.spec.name}: {result.formula} (n = {result.nobs})")
    print(result.coefficients[columns].head(max_rows).to_string(index=False, float_format='%.4g'))


def main(maindata_path: Optional[Path] = None,
         output_dir: Path = OUTPUT_DIR,
         config: Optional[PipelineConfig] = None,
         fail_on_error: bool = False,
         verbose: bool = False) -> Dict[str, ModelResult]:
    """Run the regression battery on maindata.csv.

    Args:
        maindata_path: Merged analytic table (default: intermediate/maindata.csv)
        output_dir: Directory for exported tables
        config: Pipeline configuration
        fail_on_error: Whether to raise if any model fails to fit
        verbose: Whether to print coefficient tables

    Returns:
        Fitted results keyed by model name

    Raises:
        FileNotFoundError: If the merged data file doesn't exist.
    """
    print("=" * 80)
    print("HIV MORTALITY REGRESSION ANALYSIS")
    print("=" * 80)

    config = config or PipelineConfig()
    maindata = load_maindata(maindata_path or paths.maindata)
    regression_df = derive_features(maindata, config.features)
    print(f"Regression table: {len(regression_df)} rows, "
          f"{regression_df['country_name'].nunique()} countries, "
          f"years {regression_df['year'].min()} - {regression_df['year'].max()}")

    layout = CommonPaths(output_dir=output_dir)
    layout.output_dir.mkdir(parents=True, exist_ok=True)
    summarize_mortality(regression_df).to_csv(layout.mortality_summary, index=False)

    results = run_model_battery(regression_df, config, fail_on_error=fail_on_error)
    comparisons = compare_battery(results)
    if verbose:
        for result in results.values():
            print_coefficients(result)
    export_results(results, comparisons, output_dir)

    print("\n" + "=" * 80)
    print("ANALYSIS COMPLETE")
    print("=" * 80)
    print(f"Fitted: {len(results)}/{len(config.model.models or MODEL_BATTERY)} models")
    if not comparisons.empty:
        print(comparisons[['reduced', 'full', 'test', 'statistic', 'p_value']].to_string(index=False))
    return results


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description='Run HIV mortality regression models')
    parser.add_argument('--models', type=str, default=None, help='Comma-separated list of models to fit')
    parser.add_argument('--log_zero_policy', choices=['placeholder', 'drop'], default='placeholder',
                        help='Handling of -inf log mortality (zero deaths)')
    parser.add_argument('--fail_on_error', action='store_true', help='Fail on error')
    parser.add_argument('--verbose', action='store_true', help='Print coefficient tables')
    args = parser.parse_args()

    models = args.models.split(',') if args.models else []
    config = PipelineConfig(model=ModelParameters(log_zero_policy=args.log_zero_policy, models=models))
    main(config=config, fail_on_error=args.fail_on_error, verbose=args.verbose)
