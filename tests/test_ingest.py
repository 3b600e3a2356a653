import json

import pytest

from starslice.errors import IngestError
from starslice.ingest import (
    FrameMetadata,
    frame_from_metadata,
    normalize_record,
    parse_hip,
    read_any,
    read_csv,
    read_records,
    resolve_columns,
)

HEADER = [
    "HIP", "Name", "RA", "Dec", "RA_Unit", "Plx", "Pixel_X", "Pixel_Y",
    "center_ra_h", "center_ra_m", "center_ra_s",
    "center_dec_sign", "center_dec_d", "center_dec_m", "center_dec_s",
    "image", "image_width", "image_height", "scale",
]


def _write_csv(path, rows):
    lines = [",".join(HEADER)]
    for row in rows:
        lines.append(",".join(row + [""] * (len(HEADER) - len(row))))
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def field_csv(tmp_path):
    return _write_csv(
        tmp_path / "field.csv",
        [
            ["HIP 677", "Alpheratz", "2.0969", "29.0904", "deg", "33.62", "", "",
             "0", "8", "36.25", "+", "29", "3", "43.24", "field.jpg", "4000", "3000", "1.825"],
            ["HIP 5447", "Mirach", "17.433", "35.6206", "deg", "16.36", "1200", "900"],
            ["not-a-star", "Bogus"],
            ["HIP 9640", "Almach", "", "", "", "nan?"],
        ],
    )


def test_alias_table_is_case_insensitive():
    columns = resolve_columns(["Hip", "PLX", "Star", "Mag", "x", "Y"])
    assert columns == {
        "hip": "Hip",
        "parallax_mas": "PLX",
        "label": "Star",
        "magnitude": "Mag",
        "pixel_x": "x",
        "pixel_y": "Y",
    }


@pytest.mark.parametrize("value, expected", [("HIP 677", 677), ("677", 677), (677, 677), (677.0, 677), ("Alpheratz", None), (None, None)])
def test_parse_hip(value, expected):
    assert parse_hip(value) == expected


def test_csv_objects_and_frame(field_csv):
    result = read_csv(field_csv)

    assert [o.hip for o in result.objects] == [677, 5447]
    alpheratz, mirach = result.objects
    assert alpheratz.label == "Alpheratz"
    assert alpheratz.ra_deg == pytest.approx(2.0969)
    assert alpheratz.parallax_mas == pytest.approx(33.62)
    assert not alpheratz.has_explicit_pixel
    assert mirach.has_explicit_pixel
    assert (mirach.pixel_x, mirach.pixel_y) == (1200.0, 900.0)

    frame = result.frame
    assert frame.image == "field.jpg"
    assert (frame.image_width, frame.image_height) == (4000, 3000)
    assert frame.center_ra_deg == pytest.approx(2.151, abs=1e-3)
    assert frame.center_dec_deg == pytest.approx(29.062, abs=1e-3)
    assert frame.scale_arcsec_per_px == pytest.approx(1.825)


def test_malformed_rows_are_skipped_with_diagnostics(field_csv):
    result = read_csv(field_csv)
    kinds = [(d.label, d.kind) for d in result.diagnostics]
    assert ("row 3", "MalformedRow") in kinds
    assert ("row 4", "MalformedRow") in kinds


def test_garbled_number_is_reported_not_treated_as_missing(tmp_path):
    path = _write_csv(
        tmp_path / "garbled.csv",
        [
            ["HIP 677", "Alpheratz", "2.0969", "29.0904", "deg", "33.62"],
            ["HIP 9640", "Almach", "", "", "", "nan?"],
            ["HIP 5447", "Mirach", "", "", "", "16.36", "12O0", "900"],
        ],
    )
    result = read_csv(path)

    assert [o.hip for o in result.objects] == [677]
    malformed = {d.label: d.message for d in result.diagnostics if d.kind == "MalformedRow"}
    assert "nan?" in malformed["row 2"]
    assert "12O0" in malformed["row 3"]


def test_csv_without_hip_column(tmp_path):
    path = tmp_path / "bad.csv"
    path.write_text("name,ra\nVega,279.23\n", encoding="utf-8")
    with pytest.raises(IngestError):
        read_csv(path)


def test_numeric_ra_needs_a_unit():
    result = read_records([{"hip": 677, "ra": 2.0969, "dec": 29.0904, "parallax": 33.62}])
    (obj,) = result.objects
    assert obj.ra_deg is None and obj.dec_deg is None
    assert [d.kind for d in result.diagnostics] == ["IngestWarning"]


def test_ra_unit_argument_applies_to_every_row():
    result = read_records([{"HIP": "677", "RA": 0.139795, "DEC": 29.0904}], ra_unit="hour")
    assert result.objects[0].ra_deg == pytest.approx(2.0969, abs=1e-4)


def test_sexagesimal_ra_is_hours_without_a_tag():
    obj, warnings = normalize_record({"hip": 677, "ra": "00 08 23.26", "dec": "+29 05 25.5"})
    assert warnings == []
    assert obj.ra_deg == pytest.approx(2.0969, abs=1e-4)
    assert obj.dec_deg == pytest.approx(29.0904, abs=1e-4)


def test_single_pixel_coordinate_is_ignored():
    obj, warnings = normalize_record({"hip": 1, "pixel_x": 10.0})
    assert not obj.has_explicit_pixel
    assert warnings


def test_json_input(tmp_path):
    path = tmp_path / "stars.json"
    path.write_text(json.dumps({"stars": [{"Hipparcos": 677, "distance": 29.7}, {"hip": 5447}]}))
    result = read_any(path)
    assert [o.hip for o in result.objects] == [677, 5447]
    assert result.objects[0].distance_pc == pytest.approx(29.7)
    assert not result.frame.has_center


def test_annotation_text_input(tmp_path):
    path = tmp_path / "annotations.txt"
    path.write_text(
        "Solved field\n"
        "HIP 677  RA: 00:08:23.26 Dec: +29:05:25.5\n"
        "HIP 5447\n",
        encoding="utf-8",
    )
    result = read_any(path)
    assert [o.hip for o in result.objects] == [677, 5447]
    assert result.objects[0].ra_deg == pytest.approx(2.0969, abs=1e-4)
    assert result.objects[1].ra_deg is None


def test_frame_from_metadata_scale_priority():
    meta = FrameMetadata(center_ra_deg=2.15, center_dec_deg=29.062, image_width=3600, image_height=1800)
    assert frame_from_metadata(meta).scale_arcsec_per_px == pytest.approx((3.904 * 3600 / 3600 + 2.603 * 3600 / 1800) / 2)

    fov = FrameMetadata(center_ra_deg=2.15, center_dec_deg=29.062, image_width=3600, image_height=1800, fov_width_deg=1.0)
    assert frame_from_metadata(fov).scale_arcsec_per_px == pytest.approx(1.0)

    explicit = FrameMetadata(center_ra_deg=2.15, center_dec_deg=29.062, scale_arcsec_per_px=1.825, fov_width_deg=1.0)
    frame = frame_from_metadata(explicit, 4000, 3000)
    assert frame.scale_arcsec_per_px == pytest.approx(1.825)
    assert (frame.width, frame.height) == (4000, 3000)


def test_frame_from_metadata_needs_center_and_size():
    with pytest.raises(IngestError):
        frame_from_metadata(FrameMetadata(image_width=10, image_height=10))
    with pytest.raises(IngestError):
        frame_from_metadata(FrameMetadata(center_ra_deg=1.0, center_dec_deg=1.0))
