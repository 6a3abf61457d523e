from typing import Any, Callable

import pytest

from tsch_sync.config import SyncParameters

CONCRETE = {
    "channels": [11, 13, 14, 12],
    "slots": 101,
    "p_eb": 0.9375,
    "p_sr": {11: 0.1, 13: 0.9, 14: 0.5, 12: 1.0},
    "t_scan_ns": "5250ms",
    "t_switch_ns": 0,
    "t_eb_ns": "4256us",
}


@pytest.fixture
def make_params() -> Callable[..., SyncParameters]:
    def _make(**overrides: Any) -> SyncParameters:
        return SyncParameters.from_mapping({**CONCRETE, **overrides})

    return _make


@pytest.fixture
def concrete_params(make_params) -> SyncParameters:  # noqa: ANN001
    return make_params()
