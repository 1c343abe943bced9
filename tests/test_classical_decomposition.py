import numpy as np
import pandas as pd
import pytest

from classical_decomposition import (
    centered_moving_average,
    check_reconstruction,
    compare_with_statsmodels,
    component_strength,
    decompose_series,
    plot_decomposition,
    plot_seasonal_profile,
    seasonal_component,
    seasonal_indices,
)


def test_moving_average_reproduces_linear_trend():
    index = pd.date_range('2015-01-01', periods=48, freq='MS')
    line = pd.Series(3.0 + 0.25 * np.arange(48), index=index)

    trend = centered_moving_average(line, period=12)

    assert trend.iloc[:6].isnull().all()
    assert trend.iloc[-6:].isnull().all()
    np.testing.assert_allclose(trend.iloc[6:-6].values, line.iloc[6:-6].values)


def test_moving_average_uses_half_weights_at_the_ends():
    values = pd.Series(np.zeros(13))
    values.iloc[0] = 12.0

    trend = centered_moving_average(values, period=12)

    # Only the first point is non-zero and it carries weight 0.5 / 12
    assert trend.iloc[6] == pytest.approx(0.5)


def test_odd_period_moving_average():
    values = pd.Series(np.arange(10, dtype=float))

    trend = centered_moving_average(values, period=3)

    assert np.isnan(trend.iloc[0]) and np.isnan(trend.iloc[-1])
    np.testing.assert_allclose(trend.iloc[1:-1].values, values.iloc[1:-1].values)


def test_moving_average_rejects_short_period():
    with pytest.raises(ValueError):
        centered_moving_average(pd.Series([1.0, 2.0]), period=1)


class TestAdditiveDecomposition:
    @pytest.fixture
    def decomposition(self, log_interest_series):
        return decompose_series(log_interest_series, period=12)

    def test_columns_and_alignment(self, decomposition, log_interest_series):
        assert list(decomposition.columns) == ['observed', 'trend', 'seasonal', 'residual']
        assert decomposition.index.equals(log_interest_series.index)

    def test_edges_are_undefined(self, decomposition):
        assert decomposition['trend'].isnull().sum() == 12
        assert decomposition['residual'].isnull().sum() == 12
        assert decomposition['seasonal'].notnull().all()

    def test_components_reconstruct_observed(self, decomposition):
        assert check_reconstruction(decomposition) < 1e-10

    def test_seasonal_sums_to_zero_over_a_cycle(self, decomposition):
        indices = seasonal_indices(decomposition)

        assert len(indices) == 12
        assert list(indices.index) == list(range(1, 13))
        assert abs(indices.sum()) < 1e-10
        assert abs(decomposition['seasonal'].iloc[:12].sum()) < 1e-10

    def test_seasonal_repeats_every_period(self, decomposition):
        seasonal = decomposition['seasonal'].values

        np.testing.assert_allclose(seasonal[12:], seasonal[:-12])

    def test_matches_statsmodels(self, decomposition, log_interest_series):
        assert compare_with_statsmodels(log_interest_series, decomposition) < 1e-10

    def test_strength_detects_seasonality(self, decomposition):
        strength = component_strength(decomposition)

        assert strength['seasonal_strength'] > 0.8
        assert strength['trend_strength'] > 0.8


def test_seasonal_indices_follow_calendar_month_when_series_starts_mid_year(log_interest_series):
    shifted = log_interest_series.iloc[5:]
    decomposition = decompose_series(shifted, period=12)

    indices = seasonal_indices(decomposition)
    july = decomposition['seasonal'][decomposition.index.month == 7]

    assert indices.loc[7] == pytest.approx(july.iloc[0])
    assert abs(indices.sum()) < 1e-10


def test_multiplicative_decomposition(interest_series):
    decomposition = decompose_series(interest_series, period=12, model='multiplicative')

    assert check_reconstruction(decomposition) < 1e-8
    assert seasonal_indices(decomposition).mean() == pytest.approx(1.0)
    assert compare_with_statsmodels(interest_series, decomposition) < 1e-8


def test_seasonal_component_requires_known_model():
    with pytest.raises(ValueError, match='Unknown decomposition model'):
        seasonal_component(pd.Series(np.ones(24)), period=12, model='cubic')


def test_decompose_rejects_missing_values(log_interest_series):
    gappy = log_interest_series.copy()
    gappy.iloc[40] = np.nan

    with pytest.raises(ValueError, match='impute'):
        decompose_series(gappy)


def test_decompose_rejects_short_series(log_interest_series):
    with pytest.raises(ValueError, match='at least 24'):
        decompose_series(log_interest_series.iloc[:20])


def test_plots_are_written(log_interest_series, tmp_path):
    decomposition = decompose_series(log_interest_series)
    decomposition_path = tmp_path / 'decomposition.png'
    profile_path = tmp_path / 'profile.png'

    plot_decomposition(decomposition, str(decomposition_path))
    plot_seasonal_profile(seasonal_indices(decomposition), str(profile_path))

    assert decomposition_path.exists()
    assert profile_path.exists()


@pytest.mark.parametrize('model, reference', [('additive', 0.0), ('multiplicative', 1.0)])
def test_seasonal_profile_reference_follows_model(interest_series, tmp_path, model, reference):
    decomposition = decompose_series(interest_series, model=model)
    output_path = tmp_path / f'profile_{model}.png'

    fig = plot_seasonal_profile(seasonal_indices(decomposition), str(output_path), model=model)

    ax = fig.axes[0]
    # The reference line is drawn after the bars
    np.testing.assert_allclose(ax.lines[-1].get_ydata(), [reference, reference])
    assert 'log' not in ax.get_ylabel()
    assert output_path.exists()


def test_seasonal_profile_rejects_unknown_model(log_interest_series, tmp_path):
    indices = seasonal_indices(decompose_series(log_interest_series))

    with pytest.raises(ValueError, match='Unknown decomposition model'):
        plot_seasonal_profile(indices, str(tmp_path / 'profile.png'), model='cubic')
