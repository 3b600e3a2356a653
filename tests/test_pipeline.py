import json
import threading

import pytest

from conftest import FakeResponse, FakeSession
from starslice.calibration import CalibrationOverride
from starslice.catalog import LocalCatalog
from starslice.errors import EmptyBatchError
from starslice.models import CelestialObject, ImageInfo, PlacementConfig
from starslice.pipeline import PlacementPipeline, batch_to_dict, build_remote_lookup, write_placements
from starslice.simbad_client import CachedSimbadLookup, SimbadTextClient
from starslice.star_data import get_field_calibration


@pytest.fixture
def field_objects():
    return [
        CelestialObject(hip=677, label="Alpheratz"),
        CelestialObject(hip=544, label="A"),
        CelestialObject(hip=971, label="E"),
        CelestialObject(hip=502),
    ]


def test_partial_batch_keeps_going(andromeda_frame, offline_config):
    objects = [
        CelestialObject(hip=677, label="Alpheratz"),
        CelestialObject(hip=99999, label="Nowhere"),  # no data anywhere
        CelestialObject(hip=99998, ra_deg=182.15, dec_deg=-29.062, parallax_mas=10.0),  # far side of the sky
        CelestialObject(hip=99997, ra_deg=4.0, dec_deg=29.062, parallax_mas=10.0),  # well outside the frame
    ]
    batch = PlacementPipeline(config=offline_config).place(objects, andromeda_frame, ImageInfo(4000, 3000))

    assert [p.hip for p in batch.placements] == [677]
    assert batch.is_partial
    kinds = {d.hip: d.kind for d in batch.diagnostics}
    assert kinds == {99999: "NotResolvable", 99998: "ProjectionSingularity", 99997: "OutOfBounds"}


def test_nothing_survives(andromeda_frame, offline_config):
    with pytest.raises(EmptyBatchError) as excinfo:
        PlacementPipeline(config=offline_config).place(
            [CelestialObject(hip=99999)], andromeda_frame, ImageInfo(4000, 3000)
        )
    assert [d.kind for d in excinfo.value.diagnostics] == ["NotResolvable"]


def test_empty_input_is_an_empty_batch(andromeda_frame, offline_config):
    with pytest.raises(EmptyBatchError):
        PlacementPipeline(config=offline_config).place([], andromeda_frame, ImageInfo(4000, 3000))


def test_field_is_nearest_first(andromeda_frame, offline_config, field_objects):
    pipeline = PlacementPipeline(
        calibration=CalibrationOverride(get_field_calibration()),
        config=offline_config,
    )
    batch = pipeline.place(field_objects, andromeda_frame, ImageInfo(4000, 3000))

    distances = [p.distance.distance_ly for p in batch.placements]
    assert distances == sorted(distances)
    scaled = [p.scaled_distance for p in batch.placements]
    assert scaled == sorted(scaled)
    assert scaled[-1] == pytest.approx(1.0)

    sources = {p.label: p.pixel_source for p in batch.placements}
    assert sources == {"Alpheratz": "calibration", "A": "calibration", "E": "calibration", "HIP 502": "projection"}
    assert batch.scaling.volume_depth == 4000.0


def test_volume_depth_from_config(andromeda_frame):
    config = PlacementConfig(use_remote=False, cache_db=None, volume_depth=500.0)
    batch = PlacementPipeline(config=config).place(
        [CelestialObject(hip=677, label="Alpheratz")], andromeda_frame, ImageInfo(4000, 3000)
    )
    assert batch.scaling.volume_depth == 500.0


def test_calibrated_and_explicit_stars_need_no_frame(offline_config):
    pipeline = PlacementPipeline(calibration=CalibrationOverride({"Alpheratz": (1977, 1287)}), config=offline_config)
    objects = [
        CelestialObject(hip=677, label="Alpheratz"),
        CelestialObject(hip=5447, label="Mirach", pixel_x=10.0, pixel_y=20.0),
        CelestialObject(hip=9640, label="Almach"),
    ]
    batch = pipeline.place(objects, None, ImageInfo(4000, 3000))
    assert {p.label for p in batch.placements} == {"Alpheratz", "Mirach"}
    assert [d.label for d in batch.diagnostics] == ["Almach"]


def test_remote_fallback_through_queue(andromeda_frame, empty_catalog, fake_session, no_sleep):
    config = PlacementConfig(cache_db=None, remote_delay_sec=0.5)
    pipeline = PlacementPipeline(
        catalog=empty_catalog,
        remote=SimbadTextClient(fake_session),
        config=config,
        sleep=no_sleep,
    )
    objects = [CelestialObject(hip=677, label="Alpheratz"), CelestialObject(hip=42)]
    batch = pipeline.place(objects, andromeda_frame, ImageInfo(4000, 3000))

    (placement,) = batch.placements
    assert placement.distance.source == "remote"
    assert placement.ra_deg == pytest.approx(2.0969, abs=1e-4)
    assert fake_session.calls == ["HIP 677", "HIP 42"]
    assert no_sleep.calls == [0.5]


def test_remote_timeout_is_reported(andromeda_frame, empty_catalog, no_sleep):
    session = FakeSession(timeout_for={"HIP 677"})
    pipeline = PlacementPipeline(
        catalog=empty_catalog,
        remote=SimbadTextClient(session),
        config=PlacementConfig(cache_db=None),
        sleep=no_sleep,
    )
    objects = [CelestialObject(hip=677, label="Alpheratz"), CelestialObject(hip=5, parallax_mas=10.0, pixel_x=1.0, pixel_y=1.0)]
    batch = pipeline.place(objects, andromeda_frame, ImageInfo(4000, 3000))

    assert [p.hip for p in batch.placements] == [5]
    assert [(d.hip, d.kind) for d in batch.diagnostics] == [(677, "RemoteLookupTimeout"), (677, "NotResolvable")]
    assert batch.diagnostics[0].label == "Alpheratz"


def test_unreachable_remote_is_reported_by_label(andromeda_frame, empty_catalog, no_sleep, monkeypatch):
    session = FakeSession()
    monkeypatch.setattr(session, "get", lambda *a, **kw: FakeResponse("", status_code=503))
    pipeline = PlacementPipeline(
        catalog=empty_catalog,
        remote=SimbadTextClient(session),
        config=PlacementConfig(cache_db=None),
        sleep=no_sleep,
    )
    objects = [CelestialObject(hip=677, label="Alpheratz"), CelestialObject(hip=5, parallax_mas=10.0, pixel_x=1.0, pixel_y=1.0)]
    batch = pipeline.place(objects, andromeda_frame, ImageInfo(4000, 3000))

    assert [p.hip for p in batch.placements] == [5]
    assert batch.diagnostics[0].kind == "RemoteLookupError"
    assert batch.diagnostics[0].label == "Alpheratz"


def test_cancel_keeps_stars_resolved_before_it(andromeda_frame, empty_catalog, no_sleep):
    looked_up = []

    def remote(hip):
        looked_up.append(hip)
        pipeline.cancel()
        return {"hip": hip, "parallax_mas": 33.62, "ra_deg": 2.0969, "dec_deg": 29.0904}

    pipeline = PlacementPipeline(
        catalog=empty_catalog,
        remote=remote,
        config=PlacementConfig(cache_db=None),
        sleep=no_sleep,
    )
    objects = [
        CelestialObject(hip=677, label="Alpheratz"),
        CelestialObject(hip=5447, label="Mirach"),
        CelestialObject(hip=9640, label="Almach"),
    ]
    batch = pipeline.place(objects, andromeda_frame, ImageInfo(4000, 3000))

    assert looked_up == [677]
    assert pipeline.cancelled
    assert [p.label for p in batch.placements] == ["Alpheratz"]
    assert batch.placements[0].distance.source == "remote"
    cancelled = [d.label for d in batch.diagnostics if d.kind == "RemoteLookupCancelled"]
    assert cancelled == ["Mirach", "Almach"]


def test_shared_cancel_event_stops_lookups(andromeda_frame, empty_catalog):
    event = threading.Event()
    event.set()

    def remote(hip):
        raise AssertionError("remote called after cancel")

    pipeline = PlacementPipeline(
        catalog=empty_catalog, remote=remote, config=PlacementConfig(cache_db=None), cancel_event=event
    )
    objects = [CelestialObject(hip=677, label="Alpheratz"), CelestialObject(hip=5, parallax_mas=10.0, pixel_x=1.0, pixel_y=1.0)]
    batch = pipeline.place(objects, andromeda_frame, ImageInfo(4000, 3000))

    assert [p.hip for p in batch.placements] == [5]
    assert ("Alpheratz", "RemoteLookupCancelled") in [(d.label, d.kind) for d in batch.diagnostics]


def test_no_remote_when_disabled(andromeda_frame, empty_catalog):
    def remote(hip):
        raise AssertionError("remote called")

    pipeline = PlacementPipeline(catalog=empty_catalog, remote=remote, config=PlacementConfig(use_remote=False))
    with pytest.raises(EmptyBatchError):
        pipeline.place([CelestialObject(hip=677)], andromeda_frame, ImageInfo(4000, 3000))


def test_build_remote_lookup(tmp_path):
    assert isinstance(build_remote_lookup(PlacementConfig(cache_db=None)), SimbadTextClient)
    assert isinstance(build_remote_lookup(PlacementConfig(cache_db=tmp_path / "c.db")), CachedSimbadLookup)


def test_pipeline_does_not_create_cache_directory_up_front(tmp_path):
    cache_db = tmp_path / "simbad_cache" / "cache.db"
    pipeline = PlacementPipeline(config=PlacementConfig(cache_db=cache_db))
    assert isinstance(pipeline.resolver.remote, CachedSimbadLookup)
    assert not cache_db.parent.exists()


def test_write_placements(tmp_path, andromeda_frame, offline_config, field_objects):
    pipeline = PlacementPipeline(
        catalog=LocalCatalog(),
        calibration=CalibrationOverride(get_field_calibration()),
        config=offline_config,
    )
    image = ImageInfo(4000, 3000, filename="field.jpg", back_filename="field-back.jpg")
    batch = pipeline.place(field_objects, andromeda_frame, image)

    path = write_placements(batch, tmp_path / "out")
    data = json.loads(path.read_text(encoding="utf-8"))

    assert path.name == "stars.json"
    assert data == batch_to_dict(batch)
    assert data["image"]["aspectRatio"] == pytest.approx(4000 / 3000)
    assert data["backImage"] == {"filename": "field-back.jpg"}
    assert data["volume"]["depth"] == 4000.0
    assert set(data["scaling"]) == {"frontOffsetLy", "maxDistanceLy", "distanceRangeLy"}
    first = data["stars"][0]
    assert set(first) == {
        "hip", "name", "ra", "dec", "pixelX", "pixelY",
        "magnitude", "distanceLy", "distancePc", "scaledDistance",
    }
    assert first["distanceLy"] == pytest.approx(first["distancePc"] * 3.26156)
