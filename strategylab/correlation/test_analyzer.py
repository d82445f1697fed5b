"""
Tests for the correlation analyzer and its CLI.
"""

import pytest
from scipy import stats

from strategylab.correlation.__main__ import main
from strategylab.correlation.analyzer import (
    CorrelationResult,
    align_on_dates,
    approximate_p_value,
    calculate_correlations,
    correlation_matrix,
    exact_p_value,
    pearson_correlation,
    significance_bucket,
)
from strategylab.correlation.exceptions import CorrelationError, MisalignedSeriesError


class TestPearson:
    """Tests for pearson_correlation."""

    def test_perfect_positive(self):
        assert pearson_correlation([1, 2, 3, 4], [2, 4, 6, 8]) == pytest.approx(1.0)

    def test_perfect_negative(self):
        assert pearson_correlation([1, 2, 3, 4], [8, 6, 4, 2]) == pytest.approx(-1.0)

    def test_zero_variance(self):
        assert pearson_correlation([5, 5, 5], [1, 2, 3]) == 0.0

    def test_constant_float_series(self):
        """A constant series is zero even where the sums do not cancel exactly."""
        constant = [64321.77] * 30
        trend = [float(i) for i in range(30)]
        assert pearson_correlation(trend, constant) == 0.0
        assert pearson_correlation(constant, trend) == 0.0

    def test_empty(self):
        assert pearson_correlation([], []) == 0.0

    def test_bounded(self):
        r = pearson_correlation([0.1, 0.2, 0.3], [0.3, 0.6, 0.9])
        assert -1.0 <= r <= 1.0

    def test_length_mismatch(self):
        with pytest.raises(MisalignedSeriesError):
            pearson_correlation([1, 2, 3], [1, 2])


class TestPValues:
    """Tests for the approximate and exact p-values."""

    def test_approximation(self):
        # t = 0.5 * sqrt(10 / 0.75), x = 0.5
        assert approximate_p_value(0.5, 12) == pytest.approx(0.49375)

    def test_short_series(self):
        assert approximate_p_value(0.9, 2) == 1.0
        assert exact_p_value(0.9, 2) == 1.0

    def test_perfect_correlation(self):
        assert approximate_p_value(1.0, 10) == 0.0
        assert approximate_p_value(-1.0, 10) == 0.0
        assert exact_p_value(1.0, 10) == 0.0

    def test_zero_correlation(self):
        assert approximate_p_value(0.0, 30) == pytest.approx(1.0)

    def test_clamped(self):
        for r in (0.1, 0.5, 0.9, 0.999999, -0.999999):
            p = approximate_p_value(r, 50)
            assert 0.0 <= p <= 1.0

    def test_exact_matches_scipy(self):
        t = 0.5 * (10 / 0.75) ** 0.5
        assert exact_p_value(0.5, 12) == pytest.approx(2 * stats.t.sf(t, 10))

    def test_exact_differs_from_approximation(self):
        assert exact_p_value(0.5, 12) < approximate_p_value(0.5, 12)


class TestSignificance:
    """Tests for significance_bucket."""

    @pytest.mark.parametrize(
        "r, p, expected",
        [
            (0.8, 0.01, "high"),
            (-0.8, 0.01, "high"),
            (0.8, 0.07, "medium"),
            (0.6, 0.01, "medium"),
            (0.6, 0.2, "low"),
            (0.3, 0.0, "low"),
            (0.7, 0.01, "medium"),
        ],
    )
    def test_buckets(self, r, p, expected):
        assert significance_bucket(r, p) == expected


class TestCalculateCorrelations:
    """Tests for calculate_correlations."""

    def test_self_correlation(self, base_bars):
        results = calculate_correlations(base_bars, {"self": base_bars})
        assert len(results) == 1
        assert results[0].asset == "self"
        assert results[0].correlation == pytest.approx(1.0)
        assert results[0].significance == "high"

    def test_sorted_by_absolute_correlation(self, base_bars, other_assets):
        results = calculate_correlations(base_bars, other_assets)
        assert [r.asset for r in results] == ["inverse", "follower", "noise"]
        assert results[0].correlation == pytest.approx(-1.0)
        assert results[0].significance == "high"
        assert results[1].significance == "high"
        assert results[2].significance == "low"

    def test_result_ranges(self, base_bars, other_assets):
        for result in calculate_correlations(base_bars, other_assets, exact=True):
            assert isinstance(result, CorrelationResult)
            assert -1.0 <= result.correlation <= 1.0
            assert 0.0 <= result.p_value <= 1.0

    def test_misaligned(self, base_bars, make_bars):
        short = make_bars([100.0 + i for i in range(29)])
        with pytest.raises(MisalignedSeriesError) as exc_info:
            calculate_correlations(base_bars, {"short": short})
        assert exc_info.value.asset == "short"
        assert exc_info.value.expected == 30
        assert exc_info.value.actual == 29
        assert isinstance(exc_info.value, CorrelationError)

    def test_no_others(self, base_bars):
        assert calculate_correlations(base_bars, {}) == []

    def test_to_dict(self, base_bars):
        data = calculate_correlations(base_bars, {"self": base_bars})[0].to_dict()
        assert set(data) == {"asset", "correlation", "p_value", "significance"}


class TestMatrixAndAlignment:
    """Tests for correlation_matrix and align_on_dates."""

    def test_matrix(self, base_bars, other_assets):
        matrix = correlation_matrix({"base": base_bars, **other_assets})
        assert list(matrix.index) == ["base", "follower", "inverse", "noise"]
        assert matrix.loc["base", "base"] == 1.0
        assert matrix.loc["base", "inverse"] == pytest.approx(-1.0)
        assert matrix.loc["inverse", "base"] == matrix.loc["base", "inverse"]

    def test_matrix_misaligned(self, base_bars, make_bars):
        with pytest.raises(MisalignedSeriesError):
            correlation_matrix({"base": base_bars, "short": make_bars([100.0] * 10)})

    def test_align_on_dates(self, base_bars, make_bars):
        later = make_bars([100.0 + i for i in range(30)], start="2023-01-11")
        aligned = align_on_dates(base_bars, {"later": later})
        assert len(aligned[""]) == 20
        assert len(aligned["later"]) == 20
        assert list(aligned[""]["Date"]) == list(aligned["later"]["Date"])
        assert len(base_bars) == 30


class TestCLI:
    """Tests for the correlation CLI."""

    def write(self, temp_dir, name, frame):
        path = temp_dir / f"{name}.csv"
        frame.to_csv(path, index=False)
        return str(path)

    def test_main(self, temp_dir, base_bars, other_assets, capsys):
        base = self.write(temp_dir, "base", base_bars)
        compare = [f"{name}={self.write(temp_dir, name, df)}" for name, df in other_assets.items()]

        assert main(["--base", base, "--compare", *compare]) == 0

        out = capsys.readouterr().out
        assert out.index("inverse") < out.index("follower") < out.index("noise")

    def test_align_flag(self, temp_dir, base_bars, make_bars, capsys):
        base = self.write(temp_dir, "base", base_bars)
        later = self.write(temp_dir, "later", make_bars([100.0 + i for i in range(30)], start="2023-01-11"))

        assert main(["--base", base, "--compare", f"later={later}"]) == 1
        assert "Error:" in capsys.readouterr().err

        assert main(["--base", base, "--compare", f"later={later}", "--align", "--exact"]) == 0
        assert "later" in capsys.readouterr().out

    def test_missing_file(self, temp_dir, capsys):
        missing = str(temp_dir / "missing.csv")
        assert main(["--base", missing, "--compare", f"x={missing}"]) == 1
        assert "Error:" in capsys.readouterr().err

    def test_bad_compare_argument(self):
        with pytest.raises(SystemExit):
            main(["--base", "base.csv", "--compare", "no-equals-sign"])
