"""
Search Interest Forecaster - Variance Stabilization
---------------------------------------------------
Log transformation of the interest series and the Box-Cox diagnostics used to
justify it.
"""

import os

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from scipy import stats
from scipy.optimize import minimize_scalar


def apply_log_transform(series):
    """Apply natural log transformation"""
    values = np.asarray(series, dtype=float)
    if np.any(values[~np.isnan(values)] <= 0):
        raise ValueError("Log transform requires strictly positive values")
    return np.log(series)


def inverse_log_transform(series):
    """Apply inverse log transformation"""
    return np.exp(series)


def _guerrero_cv(lam, values, period):
    """
    Coefficient of variation of sd / mean^(1 - lambda) across consecutive
    subseries of length `period`, using the most recent whole periods.
    """
    n_blocks = len(values) // period
    blocks = values[len(values) - n_blocks * period:].reshape(n_blocks, period)
    block_mean = np.nanmean(blocks, axis=1)
    block_sd = np.nanstd(blocks, axis=1, ddof=1)
    ratio = block_sd / block_mean ** (1 - lam)
    return np.nanstd(ratio, ddof=1) / np.nanmean(ratio)


def boxcox_lambda(series, method='guerrero', period=12, lower=-1.0, upper=2.0):
    """
    Estimate the Box-Cox transformation parameter.

    Parameters:
    -----------
    series : pd.Series
        Strictly positive series
    method : str
        'guerrero' (variance-stabilizing, Guerrero 1993) or 'loglik'
        (maximum likelihood)
    period : int
        Subseries length for the Guerrero method; at least 2
    lower, upper : float
        Search bounds for lambda

    Returns:
    --------
    float
        Estimated lambda. Values near 0 indicate the log transform is appropriate.
    """
    values = np.asarray(pd.Series(series).dropna(), dtype=float)
    if np.any(values <= 0):
        raise ValueError("Box-Cox lambda requires strictly positive values")

    if method == 'guerrero':
        period = max(2, int(round(period)))
        if len(values) < 2 * period:
            raise ValueError(f"Guerrero method needs at least {2 * period} observations, got {len(values)}")
        result = minimize_scalar(
            _guerrero_cv, bounds=(lower, upper), args=(values, period), method='bounded'
        )
        return float(result.x)
    elif method == 'loglik':
        _, lam = stats.boxcox(values)
        return float(np.clip(lam, lower, upper))
    else:
        raise ValueError(f"Unknown Box-Cox lambda method: {method}")


def rolling_variability(series, window=12):
    """Rolling mean and standard deviation of a series."""
    return pd.DataFrame({
        'rolling_mean': series.rolling(window=window).mean(),
        'rolling_std': series.rolling(window=window).std(),
    })


def plot_variance_stabilization(series, log_series, output_path, window=12):
    """
    Compare the original and log-transformed series together with their
    rolling standard deviations.
    """
    os.makedirs(os.path.dirname(output_path) or '.', exist_ok=True)
    original_stats = rolling_variability(series, window)
    log_stats = rolling_variability(log_series, window)

    fig, axes = plt.subplots(2, 2, figsize=(14, 8), sharex=True)

    axes[0, 0].plot(series, color='black')
    axes[0, 0].set_title('Original Series')
    axes[0, 0].set_ylabel('Interest')
    axes[0, 0].grid(True)

    axes[1, 0].plot(original_stats['rolling_std'], color='tab:blue')
    axes[1, 0].set_title(f'Rolling Std (window={window}) - Original')
    axes[1, 0].grid(True)

    axes[0, 1].plot(log_series, color='orange')
    axes[0, 1].set_title('Log-Transformed Series')
    axes[0, 1].set_ylabel('log(Interest)')
    axes[0, 1].grid(True)

    axes[1, 1].plot(log_stats['rolling_std'], color='tab:orange')
    axes[1, 1].set_title(f'Rolling Std (window={window}) - Log')
    axes[1, 1].grid(True)

    plt.tight_layout()
    plt.savefig(output_path)
    plt.close()
    print(f"Variance stabilization plot saved to {output_path}")
