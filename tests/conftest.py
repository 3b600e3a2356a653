import pytest
import requests

from starslice.catalog import LocalCatalog
from starslice.models import PlacementConfig
from starslice.projection import ProjectionFrame


ALPHERATZ_SIMBAD_ASCII = """\
C.D.S.  -  SIMBAD4 rel 1.8  -  2024.01.15CET10:12:31

HIP 677  ---  a2*  ---  OID=@5166   (@@5166,5166)
Other object types:
   a2* (HD,HIP,...) ,SB* (**)

Coordinates(ICRS,ep=J2000,eq=2000): 00 08 23.2586  +29 05 25.555 (Opt ) A [5.29 4.38 90] 2007A&A...474..653V
Coordinates(FK4,ep=B1950,eq=1950): 00 05 50.5346  +28 48 49.213
Parallaxes (mas):  33.62 [0.35] A 2007A&A...474..653V
Radial Velocity: -10.6 [0.1] / z: -0.000035 [0.0000003] B 2006AstL...32..759G
Flux V : 2.06 [~] D ~
"""


class FakeResponse:
    def __init__(self, text="", status_code=200):
        self.text = text
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    """Stands in for requests.Session; answers are keyed by Simbad identifier."""

    def __init__(self, answers=None, timeout_for=()):
        self.answers = answers or {}
        self.timeout_for = set(timeout_for)
        self.calls = []

    def get(self, url, params=None, headers=None, timeout=None):
        ident = params["Ident"]
        self.calls.append(ident)
        if ident in self.timeout_for:
            raise requests.Timeout("read timed out")
        return FakeResponse(self.answers.get(ident, "!! No known catalog could be found"))


@pytest.fixture
def fake_session():
    return FakeSession({"HIP 677": ALPHERATZ_SIMBAD_ASCII})


@pytest.fixture
def andromeda_frame():
    """4000x3000 frame centered near Alpheratz."""
    return ProjectionFrame(
        center_ra_deg=2.15,
        center_dec_deg=29.062,
        scale_arcsec_per_px=1.825,
        width=4000,
        height=3000,
    )


@pytest.fixture
def empty_catalog():
    return LocalCatalog(include_builtin=False).load()


@pytest.fixture
def offline_config():
    return PlacementConfig(use_remote=False, cache_db=None)


@pytest.fixture
def no_sleep():
    calls = []

    def sleep(seconds, cancel_event):
        calls.append(seconds)

    sleep.calls = calls
    return sleep
