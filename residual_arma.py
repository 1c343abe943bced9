"""
Search Interest Forecaster - ARMA Modeling of Residuals
-------------------------------------------------------
Fits ARMA(p, q) models to the residual component of the decomposition and
selects the order by information criterion:

1. Stationarity testing (ADF, KPSS)
2. ACF/PACF inspection
3. Exhaustive grid search over p, q
4. Diagnostic checking of the selected model
"""

import os
import warnings
from typing import Dict, Optional, Tuple

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import joblib
import statsmodels.api as sm
from scipy import stats
from statsmodels.tsa.arima.model import ARIMA
from statsmodels.tsa.stattools import adfuller, kpss
from statsmodels.graphics.tsaplots import plot_acf, plot_pacf
from statsmodels.stats.diagnostic import acorr_ljungbox


def defined_range(series: pd.Series) -> pd.Series:
    """
    Slice a component to the span where it is defined, dropping the
    moving-average edges while keeping the index frequency.
    """
    first, last = series.first_valid_index(), series.last_valid_index()
    if first is None:
        raise ValueError("Series has no defined values")
    trimmed = series.loc[first:last]
    if trimmed.isnull().any():
        raise ValueError("Series has missing values inside its defined range")
    return trimmed


def check_stationarity(series: pd.Series, title: str = 'residuals') -> Dict[str, object]:
    """
    Augmented Dickey-Fuller and KPSS tests.

    ADF's null is a unit root (non-stationary); KPSS's null is level
    stationarity. The series is reported as stationary when ADF rejects
    and KPSS does not.
    """
    print(f"\nStationarity tests for {title}")
    series_to_test = series.dropna()

    with warnings.catch_warnings():
        warnings.filterwarnings('ignore')
        adf_stat, adf_pvalue, adf_lags, adf_nobs, adf_crit, _ = adfuller(series_to_test, autolag='AIC')
        kpss_stat, kpss_pvalue, kpss_lags, kpss_crit = kpss(series_to_test, regression='c', nlags='auto')

    print(f"ADF Statistic: {adf_stat:.4f} (p-value: {adf_pvalue:.4f})")
    for key, value in adf_crit.items():
        print(f"\tCritical Value ({key}): {value:.4f}")
    print(f"KPSS Statistic: {kpss_stat:.4f} (p-value: {kpss_pvalue:.4f})")

    is_stationary = adf_pvalue < 0.05 and kpss_pvalue > 0.05
    print(f"Result: {'Stationary' if is_stationary else 'Possibly non-stationary'}")

    return {
        'adf_stat': float(adf_stat),
        'adf_pvalue': float(adf_pvalue),
        'adf_lags': int(adf_lags),
        'kpss_stat': float(kpss_stat),
        'kpss_pvalue': float(kpss_pvalue),
        'kpss_lags': int(kpss_lags),
        'is_stationary': bool(is_stationary),
    }


def plot_acf_pacf(series: pd.Series, output_path: str, lags: int = 24, title: str = 'Residuals'):
    """Plot ACF and PACF to guide the ARMA order."""
    os.makedirs(os.path.dirname(output_path) or '.', exist_ok=True)
    series = series.dropna()
    lags = max(1, min(lags, len(series) // 2 - 1))

    fig, axes = plt.subplots(2, 1, figsize=(12, 8))
    plot_acf(series, lags=lags, ax=axes[0], alpha=0.05)
    axes[0].set_title(f'Autocorrelation Function - {title}')
    axes[0].grid(True)

    plot_pacf(series, lags=lags, ax=axes[1], alpha=0.05, method='ywm')
    axes[1].set_title(f'Partial Autocorrelation Function - {title}')
    axes[1].grid(True)

    plt.tight_layout()
    plt.savefig(output_path)
    plt.close()
    print(f"ACF and PACF plots for {title} saved to {output_path}")


def fit_arma(series: pd.Series, order: Tuple[int, int]):
    """Fit ARMA(p, q) with a constant by maximum likelihood."""
    p, q = order
    with warnings.catch_warnings():
        warnings.filterwarnings('ignore')
        model = ARIMA(series, order=(p, 0, q), trend='c')
        return model.fit()


def grid_search_arma(series: pd.Series, max_p: int = 5, max_q: int = 5, ic: str = 'aic'):
    """
    Fit every ARMA(p, q) with 0 <= p <= max_p and 0 <= q <= max_q and pick
    the order with the lowest information criterion.

    Parameters:
    -----------
    series : pd.Series
        Residual component on its defined range
    max_p, max_q : int
        Maximum AR and MA orders
    ic : str
        Information criterion used for selection ('aic', 'bic' or 'aicc')

    Returns:
    --------
    tuple
        Best (p, q), fitted best model and a DataFrame of all candidates
        sorted by the criterion
    """
    if ic not in ('aic', 'bic', 'aicc'):
        raise ValueError(f"Unknown information criterion: {ic}")

    total_models = (max_p + 1) * (max_q + 1)
    print(f"\nPerforming grid search for ARMA parameters on {len(series)} residuals...")
    print(f"Evaluating {total_models} different models...")

    best_score = float('inf')
    best_order = None
    best_model = None
    records = []

    model_count = 0
    for p in range(max_p + 1):
        for q in range(max_q + 1):
            record = {'p': p, 'q': q, 'aic': np.nan, 'bic': np.nan, 'aicc': np.nan, 'llf': np.nan,
                      'converged': False, 'is_stationary': False, 'is_invertible': False, 'error': ''}
            try:
                result = fit_arma(series, (p, q))
            except (ValueError, IndexError, np.linalg.LinAlgError) as e:
                record['error'] = str(e)
                records.append(record)
                continue

            score = getattr(result, ic)
            record.update({
                'aic': result.aic,
                'bic': result.bic,
                'aicc': result.aicc,
                'llf': result.llf,
                'converged': bool(result.mle_retvals.get('converged', True)) if result.mle_retvals else True,
                # Roots of the lag polynomials must lie outside the unit circle
                'is_stationary': bool(np.all(np.abs(result.arroots) > 1)),
                'is_invertible': bool(np.all(np.abs(result.maroots) > 1)),
            })
            records.append(record)

            if np.isfinite(score) and score < best_score:
                best_score = score
                best_order = (p, q)
                best_model = result

            model_count += 1
            if model_count % 10 == 0:
                print(f"  Evaluated {model_count}/{total_models} models...")

    results = pd.DataFrame(records).sort_values(by=[ic], na_position='last').reset_index(drop=True)

    if best_order is None:
        raise ValueError("No ARMA candidate could be fitted to the residuals")

    print(f"\nTop 5 models by {ic.upper()}:")
    print(results.head(5)[['p', 'q', 'aic', 'bic', 'llf']].to_string(index=False))
    print(f"\nBest model: ARMA{best_order} with {ic.upper()}={best_score:.3f}")

    return best_order, best_model, results


def model_parameters(results) -> pd.DataFrame:
    """Coefficient table of a fitted model."""
    conf_int = results.conf_int()
    return pd.DataFrame({
        'coef': results.params,
        'std_err': results.bse,
        'p_value': results.pvalues,
        'lower_95': conf_int.iloc[:, 0],
        'upper_95': conf_int.iloc[:, 1],
    })


def residual_diagnostics(results, output_path: Optional[str] = None, lags=(6, 12, 24)) -> Dict[str, object]:
    """
    Ljung-Box and Jarque-Bera tests on the innovations of the fitted ARMA
    model, with an optional four-panel diagnostic plot.
    """
    print("\n--- Residual Diagnostics ---")
    innovations = pd.Series(results.resid).dropna()

    usable_lags = [lag for lag in lags if lag < len(innovations)]
    ljung_box = acorr_ljungbox(innovations, lags=usable_lags, model_df=0, return_df=True)
    print("\nLjung-Box Test (Residual Autocorrelation Check):")
    print(ljung_box)

    jb_stat, jb_pvalue = stats.jarque_bera(innovations)
    print("\nJarque-Bera Test (Normality Check):")
    print(f"Statistic: {jb_stat:.4f}, p-value: {jb_pvalue:.4f}")
    if jb_pvalue < 0.05:
        print("Result: Residuals do not follow a normal distribution")
    else:
        print("Result: Residuals follow a normal distribution")

    if output_path:
        os.makedirs(os.path.dirname(output_path) or '.', exist_ok=True)
        fig, axes = plt.subplots(2, 2, figsize=(14, 10))

        axes[0, 0].plot(innovations)
        axes[0, 0].set_title('Model Residuals')
        axes[0, 0].axhline(y=0, color='r', linestyle='-')
        axes[0, 0].grid(True)

        axes[0, 1].hist(innovations, bins=20, density=True, alpha=0.7)
        axes[0, 1].set_title('Residual Histogram')
        axes[0, 1].set_xlabel('Residual Value')
        axes[0, 1].set_ylabel('Density')

        plot_acf(innovations, lags=max(1, min(24, len(innovations) // 2 - 1)), ax=axes[1, 0], alpha=0.05)
        axes[1, 0].set_title('ACF of Residuals')
        axes[1, 0].grid(True)

        sm.qqplot(innovations, line='s', ax=axes[1, 1])
        axes[1, 1].set_title('Q-Q Plot of Residuals')
        axes[1, 1].grid(True)

        plt.tight_layout()
        plt.savefig(output_path)
        plt.close()
        print(f"Diagnostics plot saved to {output_path}")

    return {
        'ljung_box': ljung_box,
        'jarque_bera_stat': float(jb_stat),
        'jarque_bera_pvalue': float(jb_pvalue),
        'residual_std': float(innovations.std()),
    }


def save_model(results, model_path: str = 'models/residual_arma.pkl') -> str:
    """Persist the fitted model with joblib."""
    os.makedirs(os.path.dirname(model_path) or '.', exist_ok=True)
    joblib.dump(results, model_path)
    print(f"Saved fitted ARMA model to {model_path}")
    return model_path


def load_model(model_path: str = 'models/residual_arma.pkl'):
    """Load a model saved by save_model."""
    print(f"Loading model from {model_path}")
    return joblib.load(model_path)
