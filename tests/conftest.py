import logging

import pytest
from rich.logging import RichHandler

from entityfold.extraction.gazetteer import Gazetteer, GazetteerRecord


def build_gazetteer() -> Gazetteer:
    records = [
        GazetteerRecord(
            id="4717560",
            name="Paris",
            latitude=33.66,
            longitude=-95.55,
            population=25171,
            country_code="US",
            admin1_code="TX",
            feature_class="P",
            feature_code="PPL",
        ),
        GazetteerRecord(
            id="2988507",
            name="Paris",
            latitude=48.85,
            longitude=2.35,
            alt_names=("Lutetia", "Parigi"),
            population=2138551,
            country_code="FR",
            admin1_code="11",
            feature_class="P",
            feature_code="PPLC",
        ),
        GazetteerRecord(
            id="683506",
            name="București",
            ascii_name="Bucuresti",
            latitude=44.43,
            longitude=26.10,
            alt_names=("Bucharest",),
            population=1877155,
            country_code="RO",
            feature_class="P",
            feature_code="PPLC",
        ),
        GazetteerRecord(
            id="1",
            name="Springfield",
            latitude=0.0,
            longitude=0.0,
            population=100,
            country_code="US",
        ),
        GazetteerRecord(
            id="2",
            name="Springfield",
            latitude=1.0,
            longitude=1.0,
            population=100,
            country_code="US",
        ),
    ]
    return Gazetteer(records)


@pytest.fixture
def gazetteer() -> Gazetteer:
    return build_gazetteer()


@pytest.fixture(autouse=True)
def restore_root_logging():
    """The CLI reconfigures the root logger; undo it after each test."""

    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        if isinstance(handler, RichHandler):
            root.removeHandler(handler)
    root.setLevel(level)
