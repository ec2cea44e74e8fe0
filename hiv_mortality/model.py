#!/usr/bin/env python3
"""Regression models for HIV mortality.

Every model in the analysis is one `ModelSpec`: a family (log-linear OLS on
log mortality per 100k, or Poisson GLM with log link on the death count) and
a set of switches adding covariates to the base formula

    outcome ~ age_name + sex_name + year + gdp_per_capita

in a fixed progression:

    A: base terms
    B: A + C(year_2004) + year:C(year_2004)
    C: B + age_name:sex_name
    D: C + country_name

Categorical covariates use treatment coding with the first level as
baseline. Design columns that are linear combinations of earlier columns
(e.g. a country with a single observation) cannot be estimated; they are
left out of the fit and reported with NaN estimates, the way R's lm() reports
aliased coefficients.

Example:
    >>> from hiv_mortality.model import LINEAR_A, fit_model
    >>> result = fit_model(regression_df, LINEAR_A)
    >>> result.coefficients[['term', 'estimate', 'exp_estimate']]
"""

import numpy as np
import pandas as pd
import patsy
import statsmodels.api as sm
from dataclasses import dataclass, field
from scipy import stats
from statsmodels.stats.anova import anova_lm
from typing import Any, Dict, List, Optional, Tuple

from hiv_mortality.config import PipelineConfig
from hiv_mortality.features import replace_log_zero

FAMILIES = ('gaussian', 'poisson')
BASE_TERMS = ['age_name', 'sex_name', 'year', 'gdp_per_capita']


# ============================================================================
# Model Specifications
# ============================================================================

@dataclass(frozen=True)
class ModelSpec:
    """One regression model of the battery."""
    name: str
    family: str = 'gaussian'
    year_2004: bool = False
    year_interaction: bool = False
    age_sex_interaction: bool = False
    country: bool = False

    def __post_init__(self):
        if self.family not in FAMILIES:
            raise ValueError(f"Unknown family '{self.family}', expected one of {FAMILIES}")
        if self.year_interaction and not self.year_2004:
            raise ValueError(f"Model {self.name}: year interaction requires year_2004")

    @property
    def outcome(self) -> str:
        return 'log_mortality_per_100k' if self.family == 'gaussian' else 'val'

    @property
    def log_outcome(self) -> bool:
        """Whether coefficients read as log changes of mortality (exponentiated in tables)."""
        return self.family == 'gaussian'

    @property
    def columns(self) -> List[str]:
        """Data columns the model reads."""
        columns = [self.outcome] + BASE_TERMS
        if self.year_2004:
            columns.append('year_2004')
        if self.country:
            columns.append('country_name')
        return columns


def build_formula(spec: ModelSpec) -> str:
    """Build the patsy formula for a model.

    >>> build_formula(ModelSpec('linear_c', year_2004=True, year_interaction=True, age_sex_interaction=True))
    'log_mortality_per_100k ~ age_name + sex_name + year + gdp_per_capita + C(year_2004) + year:C(year_2004) + age_name:sex_name'
    """
    terms = list(BASE_TERMS)
    if spec.year_2004:
        terms.append('C(year_2004)')
    if spec.year_interaction:
        terms.append('year:C(year_2004)')
    if spec.age_sex_interaction:
        terms.append('age_name:sex_name')
    if spec.country:
        terms.append('country_name')
    return f"{spec.outcome} ~ " + " + ".join(terms)


def _progression(family: str, prefix: str) -> List[ModelSpec]:
    return [
        ModelSpec(f'{prefix}_a', family),
        ModelSpec(f'{prefix}_b', family, year_2004=True, year_interaction=True),
        ModelSpec(f'{prefix}_c', family, year_2004=True, year_interaction=True,
                  age_sex_interaction=True),
        ModelSpec(f'{prefix}_d', family, year_2004=True, year_interaction=True,
                  age_sex_interaction=True, country=True),
    ]


LINEAR_A, LINEAR_B, LINEAR_C, LINEAR_D = _progression('gaussian', 'linear')
POISSON_A, POISSON_B, POISSON_C, POISSON_D = _progression('poisson', 'poisson')

MODEL_BATTERY: List[ModelSpec] = [
    LINEAR_A, LINEAR_B, LINEAR_C, LINEAR_D,
    POISSON_A, POISSON_B, POISSON_C, POISSON_D,
]

# Each pair adds terms to the first model: (reduced, full)
NESTED_PAIRS: List[Tuple[str, str]] = [
    (reduced.name, full.name)
    for family in (MODEL_BATTERY[:4], MODEL_BATTERY[4:])
    for reduced, full in zip(family[:-1], family[1:])
]


def get_spec(name: str) -> ModelSpec:
    """Look up a battery model by name."""
    for spec in MODEL_BATTERY:
        if spec.name == name:
            return spec
    raise ValueError(f"Unknown model '{name}', expected one of {[s.name for s in MODEL_BATTERY]}")


# ============================================================================
# Model Frame
# ============================================================================

def prepare_model_frame(df: pd.DataFrame, spec: ModelSpec,
                        log_zero_policy: str = 'placeholder',
                        placeholder: float = 0.01) -> Tuple[pd.DataFrame, int]:
    """Select the model's columns and apply the non-finite policy.

    Under 'placeholder' the -inf log mortality of zero-death rows is replaced
    (log-linear models only). Any row still holding a null or non-finite
    value in a used column is then dropped, which under 'drop' includes the
    zero-death rows.

    Returns:
        (frame, number of dropped rows)
    """
    if log_zero_policy not in ('placeholder', 'drop'):
        raise ValueError(f"Unknown log_zero_policy '{log_zero_policy}'")
    missing = [col for col in spec.columns if col not in df.columns]
    if missing:
        raise ValueError(f"Model {spec.name} needs columns {missing}; run derive_features first")

    frame = df[spec.columns].copy()
    if spec.log_outcome and log_zero_policy == 'placeholder':
        frame = replace_log_zero(frame, placeholder, column=spec.outcome)

    keep = frame.notna().all(axis=1)
    for col in frame.columns:
        if pd.api.types.is_numeric_dtype(frame[col]) and not isinstance(frame[col].dtype, pd.CategoricalDtype):
            keep &= np.isfinite(frame[col].astype(float))
    frame = frame.loc[keep].copy()

    # Levels without rows would only add empty design columns
    for col in frame.columns:
        if isinstance(frame[col].dtype, pd.CategoricalDtype):
            frame[col] = frame[col].cat.remove_unused_categories()

    if frame.empty:
        raise ValueError(f"Model {spec.name} has no complete rows to fit")
    return frame, int((~keep).sum())


def find_aliased_columns(exog: pd.DataFrame, tol: float = 1e-7) -> List[str]:
    """Names of design columns that are linear combinations of earlier columns.

    Columns are checked left to right against the span of the columns kept so
    far, on the R factor of a QR decomposition of the design.
    """
    if exog.shape[1] == 0:
        return []
    r = np.linalg.qr(exog.to_numpy(dtype=float), mode='r')
    basis = np.empty((r.shape[0], 0))
    aliased = []
    for j, name in enumerate(exog.columns):
        col = r[:, j]
        norm = np.linalg.norm(col)
        resid = col - basis @ (basis.T @ col)
        resid = resid - basis @ (basis.T @ resid)  # second pass for stability
        resid_norm = np.linalg.norm(resid)
        if norm == 0 or resid_norm <= tol * norm:
            aliased.append(name)
        else:
            basis = np.column_stack([basis, resid / resid_norm])
    return aliased


# ============================================================================
# Fitting
# ============================================================================

@dataclass
class ModelResult:
    """A fitted model with its coefficient table."""
    spec: ModelSpec
    formula: str
    fit: Any
    coefficients: pd.DataFrame
    aliased: List[str] = field(default_factory=list)
    row_index: pd.Index = field(default_factory=lambda: pd.Index([]))
    dropped_rows: int = 0

    @property
    def nobs(self) -> int:
        return int(self.fit.nobs)

    @property
    def statistics(self) -> Dict[str, float]:
        return fit_statistics(self)


def coefficient_table(fit, terms: List[str], exponentiate: bool = False,
                      alpha: float = 0.05) -> pd.DataFrame:
    """Tidy coefficient table with one row per design term.

    Terms that were not estimated (aliased) get NaN in every column.

    Returns:
        DataFrame with term, estimate, std_error, statistic, p_value,
        conf_low, conf_high and, if exponentiate, exp_estimate and
        percent_change
    """
    conf_int = np.asarray(fit.conf_int(alpha=alpha))
    table = pd.DataFrame({
        'estimate': np.asarray(fit.params),
        'std_error': np.asarray(fit.bse),
        'statistic': np.asarray(fit.tvalues),
        'p_value': np.asarray(fit.pvalues),
        'conf_low': conf_int[:, 0],
        'conf_high': conf_int[:, 1],
    }, index=list(fit.model.exog_names)).reindex(terms)
    table.index.name = 'term'
    table = table.reset_index()

    if exponentiate:
        table['exp_estimate'] = np.exp(table['estimate'])
        table['percent_change'] = 100 * (table['exp_estimate'] - 1)
    return table


def fit_model(df: pd.DataFrame, spec: ModelSpec,
              config: Optional[PipelineConfig] = None) -> ModelResult:
    """Fit one model to the regression table.

    Args:
        df: Regression table from `derive_features`
        spec: Model definition
        config: Pipeline configuration (non-finite policy, placeholder,
            confidence level, GLM iterations)

    Returns:
        ModelResult with the statsmodels results object and coefficient table

    Raises:
        ValueError: If required columns are missing or no complete rows remain
    """
    config = config or PipelineConfig()
    frame, dropped = prepare_model_frame(
        df, spec, config.model.log_zero_policy, config.features.log_zero_placeholder
    )

    formula = build_formula(spec)
    endog, exog = patsy.dmatrices(formula, frame, return_type='dataframe', NA_action='raise')
    terms = list(exog.columns)
    aliased = find_aliased_columns(exog, config.model.rank_tolerance)
    exog_fit = exog.drop(columns=aliased)
    endog = endog.iloc[:, 0]

    if spec.family == 'gaussian':
        fit = sm.OLS(endog, exog_fit).fit()
    else:
        fit = sm.GLM(endog, exog_fit, family=sm.families.Poisson()).fit(
            maxiter=config.model.glm_maxiter
        )

    coefficients = coefficient_table(fit, terms, spec.log_outcome, config.model.alpha)
    return ModelResult(spec=spec, formula=formula, fit=fit,
                       coefficients=coefficients, aliased=aliased,
                       row_index=frame.index, dropped_rows=dropped)


def fit_statistics(result: ModelResult) -> Dict[str, float]:
    """Goodness-of-fit summary for one fitted model."""
    fit = result.fit
    n_params = len(fit.params)
    llf = float(fit.llf)
    stats_row = {
        'model': result.spec.name,
        'family': result.spec.family,
        'formula': result.formula,
        'nobs': int(fit.nobs),
        'dropped_rows': result.dropped_rows,
        'n_params': n_params,
        'n_aliased': len(result.aliased),
        'df_model': float(fit.df_model),
        'df_resid': float(fit.df_resid),
        'llf': llf,
        'aic': -2 * llf + 2 * n_params,
        'bic': -2 * llf + np.log(fit.nobs) * n_params,
    }
    if result.spec.family == 'gaussian':
        stats_row.update({
            'r_squared': float(fit.rsquared),
            'adj_r_squared': float(fit.rsquared_adj),
        })
    else:
        stats_row.update({
            'deviance': float(fit.deviance),
            'pearson_chi2': float(fit.pearson_chi2),
            # Diagnostic only; the Poisson fits assume a dispersion of 1
            'dispersion_ratio': float(fit.pearson_chi2 / fit.df_resid) if fit.df_resid > 0 else np.nan,
        })
    return stats_row


# ============================================================================
# Nested Model Comparison
# ============================================================================

def compare_nested(reduced: ModelResult, full: ModelResult) -> Dict[str, Any]:
    """Test whether the terms added in `full` improve on `reduced`.

    Linear models use the analysis-of-variance F test; Poisson models use the
    likelihood-ratio chi-square test on the deviance difference.

    Raises:
        ValueError: If the models differ in family or rows, or `full` does
            not have more estimated parameters than `reduced`
    """
    if reduced.spec.family != full.spec.family:
        raise ValueError(f"Cannot compare {reduced.spec.name} ({reduced.spec.family}) "
                         f"with {full.spec.name} ({full.spec.family})")
    if not reduced.row_index.equals(full.row_index):
        raise ValueError(f"{reduced.spec.name} and {full.spec.name} were fitted on different rows "
                         f"({reduced.nobs} vs {full.nobs})")
    df_diff = full.fit.df_model - reduced.fit.df_model
    if df_diff <= 0:
        raise ValueError(f"{full.spec.name} must have more parameters than {reduced.spec.name}")

    row = {
        'reduced': reduced.spec.name,
        'full': full.spec.name,
        'family': full.spec.family,
        'nobs': full.nobs,
        'df_diff': float(df_diff),
    }
    if full.spec.family == 'gaussian':
        table = anova_lm(reduced.fit, full.fit)
        row.update({
            'test': 'F',
            'ssr_reduced': float(table['ssr'].iloc[0]),
            'ssr_full': float(table['ssr'].iloc[1]),
            'statistic': float(table['F'].iloc[1]),
            'p_value': float(table['Pr(>F)'].iloc[1]),
        })
    else:
        lr = float(reduced.fit.deviance - full.fit.deviance)
        row.update({
            'test': 'Chisq',
            'deviance_reduced': float(reduced.fit.deviance),
            'deviance_full': float(full.fit.deviance),
            'statistic': lr,
            'p_value': float(stats.chi2.sf(lr, df_diff)),
        })
    return row
