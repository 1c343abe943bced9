import numpy as np
import pandas as pd
import pytest

from classical_decomposition import decompose_series
from residual_arma import (
    check_stationarity,
    defined_range,
    fit_arma,
    grid_search_arma,
    load_model,
    model_parameters,
    plot_acf_pacf,
    residual_diagnostics,
    save_model,
)


def test_defined_range_trims_moving_average_edges(log_interest_series):
    decomposition = decompose_series(log_interest_series)

    residuals = defined_range(decomposition['residual'])

    assert len(residuals) == len(log_interest_series) - 12
    assert residuals.index[0] == log_interest_series.index[6]
    assert residuals.index[-1] == log_interest_series.index[-7]
    assert residuals.index.freqstr == 'MS'


def test_defined_range_rejects_interior_gaps(ar1_residuals):
    gappy = ar1_residuals.copy()
    gappy.iloc[50] = np.nan

    with pytest.raises(ValueError, match='inside its defined range'):
        defined_range(gappy)


def test_defined_range_rejects_empty_series():
    with pytest.raises(ValueError, match='no defined values'):
        defined_range(pd.Series([np.nan, np.nan]))


def test_check_stationarity_reports_both_tests(ar1_residuals):
    result = check_stationarity(ar1_residuals)

    assert set(['adf_stat', 'adf_pvalue', 'kpss_stat', 'kpss_pvalue', 'is_stationary']) <= set(result)
    assert result['adf_pvalue'] < 0.05


class TestGridSearch:
    def test_small_grid_is_sorted_by_aic(self, ar1_residuals):
        best_order, best_model, results = grid_search_arma(ar1_residuals, max_p=2, max_q=2)

        assert len(results) == 9
        assert results['aic'].is_monotonic_increasing
        assert (results.loc[0, 'p'], results.loc[0, 'q']) == best_order
        assert best_model.aic == pytest.approx(results.loc[0, 'aic'])

    def test_ar_structure_beats_white_noise(self, ar1_residuals):
        _, _, results = grid_search_arma(ar1_residuals, max_p=1, max_q=0)
        white_noise = results[(results['p'] == 0) & (results['q'] == 0)]['aic'].iloc[0]
        ar1 = results[(results['p'] == 1) & (results['q'] == 0)]['aic'].iloc[0]

        assert ar1 < white_noise

    def test_default_grid_covers_orders_up_to_five(self, ar1_residuals):
        best_order, _, results = grid_search_arma(ar1_residuals)

        assert len(results) == 36
        assert set(results['p']) == set(range(6))
        assert set(results['q']) == set(range(6))
        assert 0 <= best_order[0] <= 5 and 0 <= best_order[1] <= 5

    def test_bic_selection(self, ar1_residuals):
        best_order, _, results = grid_search_arma(ar1_residuals, max_p=2, max_q=1, ic='bic')

        assert results['bic'].is_monotonic_increasing
        assert (results.loc[0, 'p'], results.loc[0, 'q']) == best_order

    def test_unknown_criterion_raises(self, ar1_residuals):
        with pytest.raises(ValueError, match='Unknown information criterion'):
            grid_search_arma(ar1_residuals, ic='hqic')


def test_model_parameters_table(ar1_residuals):
    results = fit_arma(ar1_residuals, (1, 0))

    table = model_parameters(results)

    assert 'ar.L1' in table.index
    assert 'const' in table.index
    assert table.loc['ar.L1', 'coef'] == pytest.approx(0.6, abs=0.2)


def test_residual_diagnostics(ar1_residuals, tmp_path):
    results = fit_arma(ar1_residuals, (1, 0))
    output_path = tmp_path / 'diagnostics.png'

    diagnostics = residual_diagnostics(results, str(output_path))

    assert 'lb_pvalue' in diagnostics['ljung_box'].columns
    assert list(diagnostics['ljung_box'].index) == [6, 12, 24]
    assert 0 <= diagnostics['jarque_bera_pvalue'] <= 1
    assert output_path.exists()


def test_acf_pacf_plot(ar1_residuals, tmp_path):
    output_path = tmp_path / 'acf.png'

    plot_acf_pacf(ar1_residuals, str(output_path), lags=24)

    assert output_path.exists()


def test_model_persistence(ar1_residuals, tmp_path):
    results = fit_arma(ar1_residuals, (1, 1))
    model_path = tmp_path / 'models' / 'arma.pkl'

    save_model(results, str(model_path))
    loaded = load_model(str(model_path))

    np.testing.assert_allclose(loaded.params.values, results.params.values)
