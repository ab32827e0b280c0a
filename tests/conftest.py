from __future__ import annotations

from pathlib import Path

import pytest
from helpers import fixed_clock

from faultline.config import FaultlineConfig
from faultline.core import CorrelationCore
from faultline.paths import PathNormalizer


@pytest.fixture()
def config(tmp_path: Path) -> FaultlineConfig:
    return FaultlineConfig(project_root=str(tmp_path))


@pytest.fixture()
def paths(tmp_path: Path) -> PathNormalizer:
    return PathNormalizer(tmp_path)


@pytest.fixture()
def core(config: FaultlineConfig) -> CorrelationCore:
    return CorrelationCore(config, clock=fixed_clock)
