"""
Search Interest Forecaster - Classical Decomposition
----------------------------------------------------
Moving-average decomposition of the (log) interest series into trend,
seasonal and residual components:

1. Trend: centered moving average over one seasonal period
2. Seasonal: per-period mean of the detrended series, normalised
3. Residual: what remains after removing trend and seasonal
"""

import calendar
import os
from typing import Dict

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
from statsmodels.tsa.seasonal import seasonal_decompose

MODELS = ('additive', 'multiplicative')


def centered_moving_average(series: pd.Series, period: int = 12) -> pd.Series:
    """
    Centered moving average of length `period`.

    For an even period this is the 2x`period` moving average, i.e. weights
    [0.5, 1, ..., 1, 0.5] / period. The first and last period // 2 values
    are NaN.
    """
    if period < 2:
        raise ValueError(f"Period must be at least 2, got {period}")

    if period % 2 == 0:
        trend = series.rolling(window=period).mean().rolling(window=2).mean().shift(-(period // 2))
    else:
        trend = series.rolling(window=period, center=True).mean()
    return trend.rename('trend')


def seasonal_component(detrended: pd.Series, period: int = 12, model: str = 'additive') -> pd.Series:
    """
    Seasonal component from a detrended series.

    Each position in the cycle gets the mean of the detrended values at that
    position (NaN ignored). The figures are centered to sum to zero for an
    additive model or to average one for a multiplicative model, then tiled
    over the full length.
    """
    if model not in MODELS:
        raise ValueError(f"Unknown decomposition model: {model}")

    positions = np.arange(len(detrended)) % period
    figure = detrended.groupby(positions).mean()
    if figure.isnull().any():
        raise ValueError("Every seasonal position needs at least one detrended value")

    if model == 'additive':
        figure = figure - figure.mean()
    else:
        figure = figure / figure.mean()

    return pd.Series(figure.values[positions], index=detrended.index, name='seasonal')


def decompose_series(series: pd.Series, period: int = 12, model: str = 'additive') -> pd.DataFrame:
    """
    Decompose a series into trend, seasonal and residual components.

    Parameters:
    -----------
    series : pd.Series
        Series without missing values (impute first)
    period : int
        Seasonal period (12 for monthly data)
    model : str
        'additive' (observed = T + S + R) or 'multiplicative' (observed = T * S * R)

    Returns:
    --------
    pd.DataFrame
        Columns observed, trend, seasonal, residual aligned on the series index
    """
    print(f"\nPerforming classical {model} decomposition (period={period})...")

    if model not in MODELS:
        raise ValueError(f"Unknown decomposition model: {model}")
    if series.isnull().any():
        raise ValueError("Series contains missing values; impute before decomposing")
    if len(series) < 2 * period:
        raise ValueError(f"Decomposition needs at least {2 * period} observations, got {len(series)}")
    if model == 'multiplicative' and (series <= 0).any():
        raise ValueError("Multiplicative decomposition requires strictly positive values")

    trend = centered_moving_average(series, period)

    if model == 'additive':
        detrended = series - trend
    else:
        detrended = series / trend

    seasonal = seasonal_component(detrended, period, model)

    if model == 'additive':
        residual = series - trend - seasonal
    else:
        residual = series / (trend * seasonal)

    decomposition = pd.DataFrame({
        'observed': series,
        'trend': trend,
        'seasonal': seasonal,
        'residual': residual.rename('residual'),
    })
    decomposition.attrs['period'] = period
    decomposition.attrs['model'] = model

    defined = decomposition['trend'].notnull().sum()
    print(f"Trend defined for {defined} of {len(series)} months "
          f"({period // 2} lost at each end to the moving average)")
    return decomposition


def seasonal_indices(decomposition: pd.DataFrame) -> pd.Series:
    """One seasonal value per calendar month (1-12)."""
    seasonal = decomposition['seasonal']
    if isinstance(seasonal.index, pd.DatetimeIndex):
        indices = seasonal.groupby(seasonal.index.month).first()
        indices.index.name = 'month'
    else:
        period = decomposition.attrs.get('period', 12)
        indices = seasonal.iloc[:period].reset_index(drop=True)
        indices.index = indices.index + 1
        indices.index.name = 'position'
    return indices.rename('seasonal_index')


def check_reconstruction(decomposition: pd.DataFrame) -> float:
    """Maximum absolute reconstruction error where the trend is defined."""
    defined = decomposition.dropna(subset=['trend', 'residual'])
    if decomposition.attrs.get('model', 'additive') == 'additive':
        rebuilt = defined['trend'] + defined['seasonal'] + defined['residual']
    else:
        rebuilt = defined['trend'] * defined['seasonal'] * defined['residual']
    return float(np.max(np.abs(defined['observed'] - rebuilt)))


def component_strength(decomposition: pd.DataFrame) -> Dict[str, float]:
    """
    Strength of trend and seasonality on a 0-1 scale:
    max(0, 1 - Var(R) / Var(T + R)) and max(0, 1 - Var(R) / Var(S + R)).
    """
    defined = decomposition.dropna(subset=['trend', 'residual'])
    trend, seasonal, residual = defined['trend'], defined['seasonal'], defined['residual']
    if decomposition.attrs.get('model', 'additive') == 'multiplicative':
        trend, seasonal, residual = np.log(trend), np.log(seasonal), np.log(residual)

    residual_var = residual.var()
    trend_strength = max(0.0, 1 - residual_var / (trend + residual).var())
    seasonal_strength = max(0.0, 1 - residual_var / (seasonal + residual).var())
    return {'trend_strength': float(trend_strength), 'seasonal_strength': float(seasonal_strength)}


def compare_with_statsmodels(series: pd.Series, decomposition: pd.DataFrame) -> float:
    """
    Largest absolute difference between this decomposition and
    statsmodels' seasonal_decompose on the same series.
    """
    period = decomposition.attrs.get('period', 12)
    model = decomposition.attrs.get('model', 'additive')
    reference = seasonal_decompose(series, model=model, period=period)

    differences = [
        np.nanmax(np.abs(decomposition['trend'].values - reference.trend.values)),
        np.nanmax(np.abs(decomposition['seasonal'].values - reference.seasonal.values)),
        np.nanmax(np.abs(decomposition['residual'].values - reference.resid.values)),
    ]
    return float(max(differences))


def plot_decomposition(decomposition: pd.DataFrame, output_path: str, title: str = 'log interest'):
    """Four-panel plot of observed, trend, seasonal and residual."""
    os.makedirs(os.path.dirname(output_path) or '.', exist_ok=True)
    fig, (ax1, ax2, ax3, ax4) = plt.subplots(4, 1, figsize=(12, 10), sharex=True)
    decomposition['observed'].plot(ax=ax1, title='Observed', color='black')
    decomposition['trend'].plot(ax=ax2, title='Trend', color='tab:blue')
    decomposition['seasonal'].plot(ax=ax3, title='Seasonal', color='tab:green')
    decomposition['residual'].plot(ax=ax4, title='Residual', color='tab:red')
    ax4.axhline(y=0 if decomposition.attrs.get('model', 'additive') == 'additive' else 1,
                color='gray', linestyle='--')
    plt.suptitle(f'Classical Decomposition of {title}', y=1.02)
    plt.tight_layout()
    plt.savefig(output_path, bbox_inches='tight')
    plt.close()
    print(f"Decomposition plot saved to {output_path}")


def plot_seasonal_profile(indices: pd.Series, output_path: str, model: str = 'additive'):
    """
    Bar chart of the seasonal index for each month, drawn against 0 for an
    additive decomposition and against 1 for a multiplicative one.

    Returns the matplotlib Figure (already saved and closed).
    """
    if model not in MODELS:
        raise ValueError(f"Unknown decomposition model: {model}")

    os.makedirs(os.path.dirname(output_path) or '.', exist_ok=True)
    if indices.index.name == 'month':
        labels = [calendar.month_abbr[month] for month in indices.index]
    else:
        labels = indices.index.astype(str)
    frame = pd.DataFrame({'month': list(labels), 'seasonal_index': indices.values})

    if model == 'additive':
        reference, ylabel = 0.0, 'Seasonal effect (added to trend)'
    else:
        reference, ylabel = 1.0, 'Seasonal factor (multiplies trend)'

    fig = plt.figure(figsize=(10, 5))
    sns.barplot(x='month', y='seasonal_index', data=frame, color='tab:green')
    plt.axhline(y=reference, color='black', linewidth=0.8)
    plt.title(f'Seasonal Index by Month ({model})')
    plt.xlabel('Month')
    plt.ylabel(ylabel)
    plt.tight_layout()
    plt.savefig(output_path)
    plt.close(fig)
    print(f"Seasonal profile plot saved to {output_path}")
    return fig
