#!/usr/bin/env python3
"""Pipeline Configuration and Parameter Documentation.

This module centralizes all pipeline parameters with their justifications
and default values using Pydantic for validation and documentation.

Parameters are organized by category:
- Data: Input file layout and the year window to analyze
- Features: Rate scaling, period cutoff and the log-zero placeholder
- Model: Non-finite handling policy and fitting settings

Usage:
    >>> from hiv_mortality.config import PipelineConfig
    >>> config = PipelineConfig()
    >>> print(config.features.log_zero_placeholder)  # 0.01
    >>> config.features.describe('year_cutoff')  # Print full documentation
    >>> config = PipelineConfig(model={'log_zero_policy': 'drop'})
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Dict, Any, List, Literal

# Metadata keys parameters carry in json_schema_extra, in print order
METADATA_KEYS = ('units', 'source', 'interpretation', 'notes')


class DocumentedParameters(BaseModel):
    """Base class adding parameter documentation helpers."""

    model_config = {'frozen': True, 'extra': 'forbid'}

    def describe(self, param_name: str) -> None:
        """Print a parameter's value, default and documentation.

        Example output:
            FeatureParameters.year_cutoff = 2004 (calendar year)
              Last year of the early period. ...
              Interpretation: Splits the series around the peak of global HIV mortality

        Args:
            param_name: Name of the parameter to describe
        """
        fields = type(self).model_fields
        if param_name not in fields:
            raise ValueError(f"Unknown parameter: {param_name}")

        field_info = fields[param_name]
        value = getattr(self, param_name)
        extra = field_info.json_schema_extra or {}

        units = f" ({extra['units']})" if 'units' in extra else ""
        changed = "" if value == field_info.default else f"  [default: {field_info.default!r}]"
        print(f"{type(self).__name__}.{param_name} = {value!r}{units}{changed}")
        print(f"  {field_info.description}")
        for key in METADATA_KEYS[1:]:
            if key in extra:
                print(f"  {key.capitalize()}: {extra[key]}")


# ============================================================================
# Data Parameters
# ============================================================================

class DataParameters(DocumentedParameters):
    """Layout of the raw input files."""

    header_skiprows: int = Field(
        default=4,
        ge=0,
        le=20,
        description="Metadata rows above the header row in the wide GDP and population files.",
        json_schema_extra={
            'units': 'rows',
            'source': 'World Bank bulk download CSV layout',
            'interpretation': 'A wrong count shifts the header and fails schema validation',
        }
    )

    first_year: int = Field(
        default=1990,
        ge=1960,
        le=2021,
        description="First year column pivoted from the wide GDP and population files.",
        json_schema_extra={
            'units': 'calendar year',
            'source': 'First year of GBD 2019 estimates',
        }
    )

    last_year: int = Field(
        default=2019,
        ge=1960,
        le=2021,
        description="Last year column pivoted from the wide GDP and population files.",
        json_schema_extra={
            'units': 'calendar year',
            'source': 'Last year of GBD 2019 estimates',
        }
    )

    @model_validator(mode='after')
    def validate_year_window(self):
        """Ensure the year window is not empty."""
        if self.first_year > self.last_year:
            raise ValueError(f"first_year ({self.first_year}) must not exceed last_year ({self.last_year})")
        return self

    @property
    def years(self) -> List[str]:
        """Year column names to pivot, as literal strings."""
        return [str(year) for year in range(self.first_year, self.last_year + 1)]


# ============================================================================
# Feature Parameters
# ============================================================================

class FeatureParameters(DocumentedParameters):
    """Parameters for derived mortality features."""

    rate_scale: float = Field(
        default=100000.0,
        gt=0.0,
        description="Population denominator for mortality rates (deaths per 100,000 people).",
        json_schema_extra={
            'units': 'people',
            'interpretation': 'mortality_per_100k = val / (population / rate_scale)',
        }
    )

    year_cutoff: int = Field(
        default=2004,
        ge=1960,
        le=2021,
        description="Last year of the early period. year_2004 is 1 for years up to and including the cutoff, 0 after.",
        json_schema_extra={
            'units': 'calendar year',
            'interpretation': 'Splits the series around the peak of global HIV mortality',
        }
    )

    log_zero_placeholder: float = Field(
        default=0.01,
        description="Value substituted for -inf log mortality (zero deaths) before fitting log-linear models.",
        json_schema_extra={
            'units': 'log deaths per 100,000',
            'source': 'Ad-hoc data cleaning step carried over from the original analysis',
            'notes': 'Not a principled imputation; only applied under the placeholder policy',
        }
    )


# ============================================================================
# Model Parameters
# ============================================================================

class ModelParameters(DocumentedParameters):
    """Parameters controlling model fitting."""

    log_zero_policy: Literal['placeholder', 'drop'] = Field(
        default='placeholder',
        description="How -inf log mortality is handled before fitting. 'placeholder' substitutes log_zero_placeholder, 'drop' rejects the rows.",
        json_schema_extra={
            'interpretation': 'One policy applies to every model in a battery',
        }
    )

    alpha: float = Field(
        default=0.05,
        gt=0.0,
        lt=0.5,
        description="Significance level for coefficient confidence intervals.",
        json_schema_extra={
            'units': 'probability',
        }
    )

    glm_maxiter: int = Field(
        default=100,
        ge=10,
        le=1000,
        description="Maximum IRLS iterations for Poisson models.",
        json_schema_extra={
            'units': 'iterations',
            'interpretation': 'High-cardinality country effects may need more iterations to converge',
        }
    )

    rank_tolerance: float = Field(
        default=1e-7,
        gt=0.0,
        lt=1e-2,
        description="Relative tolerance below which a design column counts as linearly dependent (aliased).",
        json_schema_extra={
            'units': 'dimensionless',
            'source': 'Same default as the QR tolerance of R lm()',
        }
    )

    models: List[str] = Field(
        default=[],
        description="Names of models to fit. Empty means the full battery.",
    )

    @field_validator('models')
    @classmethod
    def validate_models(cls, v):
        """Reject duplicate model names."""
        if len(set(v)) != len(v):
            raise ValueError(f"models must not contain duplicates, got {v}")
        return v


# ============================================================================
# Main Configuration Class
# ============================================================================

class PipelineConfig(BaseModel):
    """Complete pipeline configuration with all parameter categories.

    Usage:
        >>> config = PipelineConfig()
        >>> config.data.header_skiprows  # Access parameter value
        >>> config.model.describe('log_zero_policy')  # Print documentation
        >>> config.to_dict()  # Get all parameters as nested dict
    """

    model_config = {'frozen': True}

    data: DataParameters = Field(
        default_factory=DataParameters,
        description="Input file layout"
    )

    features: FeatureParameters = Field(
        default_factory=FeatureParameters,
        description="Derived feature parameters"
    )

    model: ModelParameters = Field(
        default_factory=ModelParameters,
        description="Model fitting parameters"
    )

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        """Export all parameters as nested dictionary."""
        return {
            'data': self.data.model_dump(),
            'features': self.features.model_dump(),
            'model': self.model.model_dump(),
        }

    def describe_all(self) -> None:
        """Print documentation for all parameters in all categories."""
        for category_name in ['data', 'features', 'model']:
            category = getattr(self, category_name)
            print(f"\n{category_name.upper()}")
            print("-" * 80)
            for param_name in type(category).model_fields:
                category.describe(param_name)


if __name__ == "__main__":
    """Print all parameters when run as script."""
    config = PipelineConfig()

    print("=" * 80)
    print("PIPELINE PARAMETERS")
    print("=" * 80)
    config.describe_all()
    print("\n" + "=" * 80)
