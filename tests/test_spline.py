"""
Tests for natural cubic spline fitting.
"""

import numpy as np
import pytest


S_CURVE = [(0, 0), (0.25, 0.2), (0.75, 0.8), (1, 1)]


class TestFitNaturalSpline:
    """Tests for fit_natural_spline()."""

    def test_two_points_is_linear(self):
        """Test that two knots give one linear segment."""
        from tonecurve.curves.spline import fit_natural_spline

        a, b, c, d = fit_natural_spline(np.array([0.0, 1.0]), np.array([0.2, 0.6]))
        assert a.tolist() == [0.2]
        assert b[0] == pytest.approx(0.4)
        assert c[0] == 0.0
        assert d[0] == 0.0

    def test_matches_scipy_natural_spline(self):
        """Test against scipy's natural CubicSpline on non-monotone data."""
        from scipy.interpolate import CubicSpline
        from tonecurve.curves.spline import SplineFitter

        points = [(0, 0.1), (0.2, 0.7), (0.5, 0.3), (0.8, 0.9), (1, 0.4)]
        fitter = SplineFitter(points)
        reference = CubicSpline([p[0] for p in points], [p[1] for p in points], bc_type='natural')

        xs = np.linspace(0, 1, 101)
        np.testing.assert_allclose(fitter.evaluate_array(xs), reference(xs), atol=1e-10)

    def test_second_derivative_zero_at_ends(self):
        """Test the natural boundary condition."""
        from tonecurve.curves.spline import SplineFitter

        fitter = SplineFitter([(0, 0), (0.3, 0.6), (0.6, 0.2), (1, 1)])
        last = fitter.segments[-1]
        h = last.x_end - last.x_start
        assert fitter.c[0] == pytest.approx(0.0)
        assert 2 * last.c + 6 * last.d * h == pytest.approx(0.0, abs=1e-12)

    def test_rejects_unsorted(self):
        """Test that non-increasing knots raise ValueError."""
        from tonecurve.curves.spline import fit_natural_spline

        with pytest.raises(ValueError):
            fit_natural_spline(np.array([0.0, 0.5, 0.5]), np.array([0.0, 0.1, 0.2]))


class TestSplineFitter:
    """Tests for SplineFitter."""

    def test_interpolates_knots(self):
        """Test that every knot is hit exactly."""
        from tonecurve.curves.spline import SplineFitter

        fitter = SplineFitter(S_CURVE)
        for x, y in S_CURVE:
            assert fitter.evaluate(x) == pytest.approx(y, abs=1e-12)

    def test_s_curve_shape(self):
        """Test the S-curve midpoint, toe and shoulder."""
        from tonecurve.curves.spline import SplineFitter

        fitter = SplineFitter(S_CURVE)
        assert fitter.evaluate(0.5) == pytest.approx(0.5, abs=0.05)
        assert fitter.evaluate(0.1) < 0.1
        assert fitter.evaluate(0.9) > 0.9

    def test_segment_lookup(self):
        """Test scalar and vectorized segment search agree."""
        from tonecurve.curves.spline import SplineFitter

        fitter = SplineFitter(S_CURVE)
        xs = np.array([0.0, 0.1, 0.25, 0.5, 0.75, 0.99, 1.0])
        expected = [fitter.segment_index(x) for x in xs]
        assert fitter.segment_indices(xs).tolist() == expected
        assert expected == [0, 0, 1, 1, 2, 2, 2]

    def test_segments_callable(self):
        """Test SplineSegment evaluation."""
        from tonecurve.curves.spline import SplineFitter

        fitter = SplineFitter([(0, 0), (0.5, 0.9), (1, 0.2)], preserve_monotonic=False)
        segment = fitter.segments[0]
        assert segment(0.25) == pytest.approx(fitter.evaluate(0.25))

    def test_monotone_envelope_removes_overshoot(self):
        """Test that monotone knots never produce a decreasing curve."""
        from tonecurve.curves.spline import SplineFitter

        points = [(0, 0), (0.1, 0.6), (0.2, 0.62), (0.9, 0.65), (1, 1)]
        raw = SplineFitter(points, preserve_monotonic=False)
        fitted = SplineFitter(points)

        xs = np.linspace(0, 1, 2001)
        assert np.any(np.diff(raw.evaluate_array(xs)) < 0)
        assert np.all(np.diff(fitted.evaluate_array(xs)) >= -1e-12)
        for x, y in points:
            assert fitted.evaluate(x) == pytest.approx(y, abs=1e-12)

    def test_decreasing_curve(self):
        """Test the envelope for inverted curves."""
        from tonecurve.curves.spline import SplineFitter

        points = [(0, 1), (0.1, 0.4), (0.2, 0.38), (0.9, 0.35), (1, 0)]
        fitter = SplineFitter(points)
        assert fitter.direction == -1
        values = fitter.evaluate_array(np.linspace(0, 1, 2001))
        assert np.all(np.diff(values) <= 1e-12)

    def test_outside_range_returns_end_values(self):
        """Test evaluation outside the knot range."""
        from tonecurve.curves.spline import SplineFitter

        fitter = SplineFitter([(0.2, 0.3), (0.8, 0.7)])
        assert fitter.evaluate(0.0) == 0.3
        assert fitter.evaluate(1.0) == 0.7

    def test_needs_two_points(self):
        """Test that one point is rejected."""
        from tonecurve.curves.spline import SplineFitter

        with pytest.raises(ValueError):
            SplineFitter([(0.5, 0.5)])
