import pytest

from starslice.calibration import CalibrationOverride
from starslice.catalog import LocalCatalog
from starslice.diagnostics import calibration_residuals, fit_scale, plot_residuals, rms_residual
from starslice.distance import ParallaxDistanceResolver
from starslice.models import CelestialObject
from starslice.projection import ProjectionFrame, raw_pixel


@pytest.fixture
def stars():
    return [
        CelestialObject(hip=1, label="P", ra_deg=2.0, dec_deg=29.0),
        CelestialObject(hip=2, label="Q", ra_deg=2.3, dec_deg=29.15),
        CelestialObject(hip=3, label="R", ra_deg=1.9, dec_deg=29.2),
        CelestialObject(hip=4, label="S"),  # no position
    ]


def _calibrate_with(stars, frame):
    cal = CalibrationOverride()
    for star in stars:
        if star.ra_deg is not None:
            cal.set(star.label, *raw_pixel(star.ra_deg, star.dec_deg, frame))
    return cal


def test_residuals_zero_for_matching_frame(andromeda_frame, stars):
    cal = _calibrate_with(stars, andromeda_frame)
    residuals = calibration_residuals(stars, cal, andromeda_frame)
    assert [r.label for r in residuals] == ["P", "Q", "R"]
    assert rms_residual(residuals) == pytest.approx(0.0, abs=1e-6)


def test_fit_scale_recovers_true_scale(andromeda_frame, stars):
    true_frame = ProjectionFrame(2.15, 29.062, 2.0, 4000, 3000)
    cal = _calibrate_with(stars, true_frame)

    residuals = calibration_residuals(stars, cal, andromeda_frame)
    assert rms_residual(residuals) > 1.0
    assert fit_scale(stars, cal, andromeda_frame) == pytest.approx(2.0, rel=1e-6)


def test_fit_scale_without_calibrations(andromeda_frame, stars):
    assert fit_scale(stars, CalibrationOverride(), andromeda_frame) is None
    assert calibration_residuals(stars, CalibrationOverride(), andromeda_frame) == []
    assert rms_residual([]) == 0.0


def test_plot_residuals(tmp_path, andromeda_frame, stars):
    cal = _calibrate_with(stars, ProjectionFrame(2.15, 29.062, 2.0, 4000, 3000))
    residuals = calibration_residuals(stars, cal, andromeda_frame)
    out = plot_residuals(residuals, andromeda_frame, tmp_path / "plots" / "residuals.png")
    assert out.exists() and out.stat().st_size > 0


def test_catalog_positions_are_used_for_calibrated_stars(andromeda_frame):
    objects = [CelestialObject(hip=677, label="Alpheratz"), CelestialObject(hip=971, label="E")]
    resolver = ParallaxDistanceResolver(catalog=LocalCatalog())
    cal = CalibrationOverride()
    for obj in objects:
        cal.set(obj.label, *raw_pixel(*resolver.position_for(obj), andromeda_frame))

    assert calibration_residuals(objects, cal, andromeda_frame) == []

    residuals = calibration_residuals(objects, cal, andromeda_frame, resolver.position_for)
    assert [r.label for r in residuals] == ["Alpheratz", "E"]
    assert rms_residual(residuals) == pytest.approx(0.0, abs=1e-6)
    assert fit_scale(objects, cal, andromeda_frame, resolver.position_for) == pytest.approx(1.825, rel=1e-6)
