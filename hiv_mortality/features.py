#!/usr/bin/env python3
"""Derived features for the HIV mortality regressions.

Turns the merged analytic table into the regression table:

    mortality_per_100k      = val / (population / 100000)
    log_mortality_per_100k  = ln(mortality_per_100k)
    year_2004               = 1 if year <= 2004 else 0 (categorical)

and casts age, sex and country labels to categorical columns. Every function
returns a new DataFrame and leaves its input untouched.

Zero deaths give a log mortality of -inf. That value is kept as-is here;
`replace_log_zero` is the one place where it is swapped for a placeholder.
"""

import numpy as np
import pandas as pd
from typing import List, Optional

from hiv_mortality.config import FeatureParameters

CATEGORICAL_COLUMNS: List[str] = ['age_name', 'sex_name', 'country_name']


def add_mortality_rates(df: pd.DataFrame, rate_scale: float = 100000.0) -> pd.DataFrame:
    """Add mortality_per_100k and log_mortality_per_100k.

    Population 0 gives an infinite rate, a null death count gives NaN, and a
    zero rate gives a log of -inf.
    """
    out = df.copy()
    val = out['val'].astype(float)
    population = out['population'].astype(float)
    with np.errstate(divide='ignore', invalid='ignore'):
        out['mortality_per_100k'] = val / (population / rate_scale)
        out['log_mortality_per_100k'] = np.log(out['mortality_per_100k'])
    return out


def replace_log_zero(df: pd.DataFrame, placeholder: float = 0.01,
                     column: str = 'log_mortality_per_100k') -> pd.DataFrame:
    """Replace -inf log mortality (zero deaths) with a fixed placeholder.

    This is an ad-hoc cleaning step, not an imputation: rows with zero deaths
    get log mortality `placeholder` (0.01 by default) so they can enter a
    log-linear model. Other values, including NaN and +inf, are untouched.
    """
    out = df.copy()
    zero_rate = np.isneginf(out[column].to_numpy(dtype=float))
    out.loc[zero_rate, column] = placeholder
    return out


def add_year_2004(df: pd.DataFrame, cutoff: int = 2004) -> pd.DataFrame:
    """Add the categorical period indicator (1 for years up to cutoff, else 0)."""
    out = df.copy()
    if out['year'].isna().any():
        raise ValueError("year_2004 requires a year on every row")
    indicator = (out['year'] <= cutoff).astype(int)
    out['year_2004'] = pd.Categorical(indicator, categories=[0, 1])
    return out


def cast_categoricals(df: pd.DataFrame,
                      columns: Optional[List[str]] = None) -> pd.DataFrame:
    """Cast label columns to categoricals whose levels are the observed labels, sorted.

    The first level is the reference level in every model.
    """
    out = df.copy()
    for col in columns or CATEGORICAL_COLUMNS:
        if col not in out.columns:
            continue
        values = out[col].astype(object)
        labels = values.where(values.isna(), values.astype(str))
        levels = sorted(labels.dropna().unique())
        out[col] = pd.Categorical(labels, categories=levels)
    return out


def derive_features(df: pd.DataFrame,
                    params: Optional[FeatureParameters] = None) -> pd.DataFrame:
    """Build the regression table from the merged analytic table.

    Does not apply the log-zero placeholder; see `replace_log_zero`.
    """
    params = params or FeatureParameters()
    out = add_mortality_rates(df, params.rate_scale)
    out = add_year_2004(out, params.year_cutoff)
    return cast_categoricals(out)


def summarize_mortality(df: pd.DataFrame,
                        by: Optional[List[str]] = None) -> pd.DataFrame:
    """Descriptive statistics of mortality per 100k for each group.

    Args:
        df: Regression table with mortality_per_100k
        by: Grouping columns (default: year_2004, sex_name, age_name)

    Returns:
        One row per group with n, mean, median, std, min, max and the
        number of zero-death rows
    """
    by = by or ['year_2004', 'sex_name', 'age_name']
    finite = df[np.isfinite(df['mortality_per_100k'].astype(float))]
    grouped = finite.groupby(by, observed=True)['mortality_per_100k']
    summary = grouped.agg(['count', 'mean', 'median', 'std', 'min', 'max'])
    summary['zero_deaths'] = grouped.apply(lambda s: int((s == 0).sum()))
    return summary.rename(columns={'count': 'n'}).reset_index()
