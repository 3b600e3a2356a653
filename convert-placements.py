#!/usr/bin/env python3
"""
Turn a star list (CSV, JSON or annotation text) into stars.json for the 3D viewer.

Each star gets an image pixel (calibration file, explicit pixel columns or the
gnomonic projection of its RA/Dec, in that order) and a normalized depth from
its distance. Stars missing a distance are looked up in the local catalog and
then, one at a time, on Simbad.

Usage:
  poetry run python convert-placements.py stars.csv --ra-unit deg
  poetry run python convert-placements.py stars.csv --calibration calibration.json --no-remote
  poetry run python convert-placements.py annotations.txt --width 4096 --height 2731 -o viewer/data
"""

import argparse
import logging
import signal
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))

from starslice.calibration import CalibrationOverride
from starslice.catalog import LocalCatalog
from starslice.constants import (
    CACHE_DB,
    DEFAULT_IMAGE_HEIGHT,
    DEFAULT_IMAGE_WIDTH,
    DEFAULT_MARGIN_FRACTION,
    LOG_FORMAT,
    OUTPUT_DIR,
    SIMBAD_HTTP_TIMEOUT_SECONDS,
    SIMBAD_QUERY_DELAY_SEC,
)
from starslice.diagnostics import calibration_residuals, fit_scale, plot_residuals, rms_residual
from starslice.errors import EmptyBatchError, IngestError
from starslice.ingest import frame_from_metadata, read_any
from starslice.models import ImageInfo, PlacementConfig
from starslice.pipeline import PlacementPipeline, write_placements


def main():
    parser = argparse.ArgumentParser(
        description="Place the stars of an astrophotograph into the viewer's 3D volume.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  {sys.argv[0]} stars.csv --ra-unit deg
  {sys.argv[0]} stars.csv --calibration calibration.json --no-remote
        """,
    )
    parser.add_argument("input", type=Path, help="Star list (.csv, .json or annotation text)")
    parser.add_argument("--width", type=int, default=None, help="Image width in pixels (overrides the file)")
    parser.add_argument("--height", type=int, default=None, help="Image height in pixels (overrides the file)")
    parser.add_argument(
        "--ra-unit",
        choices=["deg", "hour"],
        default=None,
        help="Unit of numeric RA columns when the file has no ra_unit column",
    )
    parser.add_argument("--calibration", type=Path, default=None, help="JSON file of label -> {x, y} pixel overrides")
    parser.add_argument("--catalog", type=Path, default=None, help="Extra local catalog JSON keyed by HIP number")
    parser.add_argument(
        "--volume-depth",
        type=float,
        default=None,
        help="Depth of the viewing volume (default: image width)",
    )
    parser.add_argument(
        "--margin",
        type=float,
        default=DEFAULT_MARGIN_FRACTION,
        help=f"Clamp margin as a fraction of the larger image side (default: {DEFAULT_MARGIN_FRACTION})",
    )
    parser.add_argument("--no-remote", action="store_true", help="Never query Simbad")
    parser.add_argument(
        "--delay",
        type=float,
        default=SIMBAD_QUERY_DELAY_SEC,
        help=f"Seconds between Simbad requests (default: {SIMBAD_QUERY_DELAY_SEC})",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=SIMBAD_HTTP_TIMEOUT_SECONDS,
        help=f"Per-request Simbad timeout in seconds (default: {SIMBAD_HTTP_TIMEOUT_SECONDS})",
    )
    parser.add_argument("--cache-db", type=Path, default=CACHE_DB, help=f"Simbad cache (default: {CACHE_DB})")
    parser.add_argument("--output-dir", "-o", type=Path, default=OUTPUT_DIR, help=f"Output directory (default: {OUTPUT_DIR})")
    parser.add_argument(
        "--residual-plot",
        type=Path,
        default=None,
        help="Also save a plot of projected vs calibrated pixels to this path",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format=LOG_FORMAT)

    try:
        imported = read_any(args.input, args.ra_unit)
    except IngestError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    meta = imported.frame
    width = args.width or meta.image_width or DEFAULT_IMAGE_WIDTH
    height = args.height or meta.image_height or DEFAULT_IMAGE_HEIGHT
    frame = None
    if meta.has_center:
        frame = frame_from_metadata(meta, width, height, margin_fraction=args.margin)
        print(
            f"Frame center RA={frame.center_ra_deg:.5f}, Dec={frame.center_dec_deg:.5f}, "
            f"scale {frame.scale_arcsec_per_px:.3f}\"/px, {width}x{height}"
        )
    else:
        print("No image center in the input; only calibrated or explicit pixels can be placed.")

    calibration = CalibrationOverride()
    if args.calibration:
        calibration.load(args.calibration)

    config = PlacementConfig(
        volume_depth=args.volume_depth,
        margin_fraction=args.margin,
        use_remote=not args.no_remote,
        remote_delay_sec=args.delay,
        remote_timeout_sec=args.timeout,
        cache_db=args.cache_db,
    )
    pipeline = PlacementPipeline(
        catalog=LocalCatalog(args.catalog),
        calibration=calibration,
        config=config,
        progress=True,
    )
    # Ctrl-C stops the Simbad lookups; stars resolved so far are still placed.
    signal.signal(signal.SIGINT, lambda signum, stack: pipeline.cancel())

    image = ImageInfo(
        width=width,
        height=height,
        filename=meta.image or "starfield.jpg",
        back_filename=meta.back_image,
    )
    try:
        batch = pipeline.place(imported.objects, frame, image)
    except EmptyBatchError as e:
        print(f"Error: {e}", file=sys.stderr)
        for d in list(imported.diagnostics) + list(e.diagnostics):
            print(f"  {d.label}: {d.kind}: {d.message}", file=sys.stderr)
        return 1

    out_path = write_placements(batch, args.output_dir)
    print(f"Saved: {out_path} ({len(batch.placements)} star(s))")
    print(
        f"Depth: {batch.scaling.front_offset_ly:.1f} - {batch.scaling.max_distance_ly:.1f} ly "
        f"-> 0..{batch.scaling.volume_depth:.0f}"
    )

    diagnostics = list(imported.diagnostics) + list(batch.diagnostics)
    if diagnostics:
        print(f"{len(diagnostics)} issue(s):", file=sys.stderr)
        for d in diagnostics:
            print(f"  {d.label}: {d.kind}: {d.message}", file=sys.stderr)

    if frame is not None and calibration.has_calibrations():
        position_for = pipeline.resolver.position_for
        residuals = calibration_residuals(imported.objects, calibration, frame, position_for)
        if residuals:
            print(f"Projection vs calibration: RMS {rms_residual(residuals):.1f} px over {len(residuals)} star(s)")
            fitted = fit_scale(imported.objects, calibration, frame, position_for)
            if fitted:
                print(f"  Best-fit scale: {fitted:.3f}\"/px (frame uses {frame.scale_arcsec_per_px:.3f})")
            if args.residual_plot:
                print(f"Saved: {plot_residuals(residuals, frame, args.residual_plot)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
