import json

import pytest

from starslice.catalog import LocalCatalog


def test_lazy_load_and_invalidate():
    catalog = LocalCatalog()
    assert not catalog.loaded
    assert 677 in catalog
    assert catalog.loaded
    catalog.invalidate()
    assert not catalog.loaded
    assert catalog.lookup_position(677) == pytest.approx((2.0969, 29.0904))


def test_extra_catalog_file(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps({
        "677": {"ra": 2.1, "dec": 29.1, "parallax": 30.0},
        "123": {"distancePc": 12.5},
        "124": {"mag": 5.0},
        "abc": {"ra": 1.0, "dec": 1.0},
    }))
    catalog = LocalCatalog(path)

    assert catalog.get(677)["parallax_mas"] == 30.0
    assert catalog.get(123)["distance_pc"] == 12.5
    assert catalog.lookup_position(123) is None
    assert catalog.get(124) is None
    assert catalog.get(5447) is not None


def test_without_builtin(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps({"1": {"ra": 0.5, "dec": 0.5}}))
    catalog = LocalCatalog(path, include_builtin=False)
    assert len(catalog) == 1
    assert 677 not in catalog
