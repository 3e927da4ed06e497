from typing import Any, Dict, Optional

import pytest

from apicloudfront import DISTRIBUTION_RESOURCE, load_resources
from config import ConfigResolver

BASE_CONFIG: Dict[str, Any] = {
    "team": "platform",
    "service": "orders",
    "environment": "dev",
    "region": "us-east-1",
}


def make_config(settings: Optional[Dict[str, Any]] = None, **overrides: Any) -> Dict[str, Any]:
    config_data = dict(BASE_CONFIG, **overrides)
    if settings is not None:
        config_data["custom"] = {"apiCloudFront": settings}
    return config_data


@pytest.fixture
def resources() -> Dict[str, Any]:
    # Always a fresh copy of the shipped template
    return load_resources()


@pytest.fixture
def distribution_config(resources: Dict[str, Any]) -> Dict[str, Any]:
    return resources["Resources"][DISTRIBUTION_RESOURCE]["Properties"]["DistributionConfig"]


@pytest.fixture
def make_resolver():
    def _make(settings: Optional[Dict[str, Any]] = None, **overrides: Any) -> ConfigResolver:
        return ConfigResolver(make_config(settings, **overrides))

    return _make
