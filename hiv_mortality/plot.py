#!/usr/bin/env python3
"""Plotting Utilities for the HIV Mortality Analysis.

This module provides the figures used in the report: the distribution of
mortality per 100k on the raw and log scale, and mean mortality over time by
age group. Plots are saved to the figures directory in high-resolution PDF
format.

Functions:
    plot_mortality_histograms: Raw and log mortality histograms.
    plot_mortality_trends: Mean mortality per 100k by year and age group.
    create_exploratory_plots: Build the regression table and draw all plots.

Usage:
    $ python -m hiv_mortality.plot  # Generate all plots from maindata.csv
"""

import argparse
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from pathlib import Path
from typing import Dict, Optional

from hiv_mortality.features import derive_features
from hiv_mortality.paths import FIGURES_DIR, CommonPaths, paths
from hiv_mortality.preprocess import load_maindata

# Plotting parameters
DPI = 300  # High resolution for publications
FIGSIZE_LARGE = (12, 8)  # For detailed plots
FIGSIZE_MEDIUM = (10, 6)
N_BINS = 50


def plot_mortality_histograms(regression_df: pd.DataFrame,
                              figures_dir: Path = FIGURES_DIR) -> Dict[str, Path]:
    """Plot histograms of mortality per 100k on the raw and log scale.

    Non-finite values (zero deaths on the log scale, zero population) are
    left out of the plots.

    Args:
        regression_df: Table with mortality_per_100k and log_mortality_per_100k
        figures_dir: Output directory

    Returns:
        Paths of the saved figures keyed by 'raw' and 'log'
    """
    layout = CommonPaths(figures_dir=figures_dir)
    layout.figures_dir.mkdir(parents=True, exist_ok=True)
    sns.set_palette("husl")

    outputs = {}
    for key, column, xlabel, output in [
        ('raw', 'mortality_per_100k', 'HIV deaths per 100,000', layout.mortality_histogram),
        ('log', 'log_mortality_per_100k', 'log(HIV deaths per 100,000)', layout.log_mortality_histogram),
    ]:
        values = regression_df[column].astype(float)
        values = values[np.isfinite(values)]

        fig, ax = plt.subplots(figsize=FIGSIZE_MEDIUM)
        sns.histplot(values, bins=N_BINS, ax=ax)
        ax.set_xlabel(xlabel)
        ax.set_ylabel('Count')
        ax.set_title(f'Distribution of {xlabel} (n = {len(values)})')
        ax.grid(True, alpha=0.3)
        fig.tight_layout()
        outputs[key] = output
        fig.savefig(outputs[key], dpi=DPI, bbox_inches='tight')
        plt.close(fig)

    return outputs


def plot_mortality_trends(regression_df: pd.DataFrame,
                          figures_dir: Path = FIGURES_DIR) -> Path:
    """Plot mean mortality per 100k across countries by year and age group."""
    layout = CommonPaths(figures_dir=figures_dir)
    layout.figures_dir.mkdir(parents=True, exist_ok=True)

    finite = regression_df[np.isfinite(regression_df['mortality_per_100k'].astype(float))]
    trends = (finite.groupby(['year', 'age_name'], observed=True)['mortality_per_100k']
                    .mean()
                    .reset_index())

    fig, ax = plt.subplots(figsize=FIGSIZE_LARGE)
    sns.lineplot(data=trends, x='year', y='mortality_per_100k', hue='age_name', ax=ax)
    ax.set_xlabel('Year')
    ax.set_ylabel('Mean HIV deaths per 100,000')
    ax.set_title('HIV Mortality by Year and Age Group')
    ax.grid(True, alpha=0.3)
    fig.tight_layout()
    output = layout.mortality_trends
    fig.savefig(output, dpi=DPI, bbox_inches='tight')
    plt.close(fig)
    return output


def create_exploratory_plots(maindata_path: Optional[Path] = None,
                             figures_dir: Path = FIGURES_DIR) -> None:
    """Create all report figures from the merged analytic table.

    Raises:
        FileNotFoundError: If maindata.csv doesn't exist.
    """
    print("Creating exploratory plots...")
    regression_df = derive_features(load_maindata(maindata_path or paths.maindata))
    plot_mortality_histograms(regression_df, figures_dir)
    plot_mortality_trends(regression_df, figures_dir)
    print(f"Exploratory plots saved to {figures_dir}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description='Create HIV mortality plots')
    parser.add_argument('--maindata', type=str, default=None, help='Path to maindata.csv')
    args = parser.parse_args()
    create_exploratory_plots(Path(args.maindata) if args.maindata else None)
