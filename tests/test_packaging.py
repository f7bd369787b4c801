import importlib

import pytest


@pytest.mark.parametrize(
    "name, export",
    [
        ("iris_tracker.core", "EventChannel"),
        ("iris_tracker.controllers", "CalibrationController"),
        ("iris_tracker.pipeline", "TelemetryDecoder"),
        ("iris_tracker.utils", "ThrottledLogger"),
    ],
)
def test_subpackages_are_regular_packages(name, export):
    package = importlib.import_module(name)
    # Namespace packages have no __file__ and are skipped by setuptools' find.
    assert package.__file__ is not None
    assert hasattr(package, export)
