from __future__ import annotations

import pytest

from expectation_collapse.registry import DimensionRegistry, parse_registry_mapping


@pytest.fixture
def registry() -> DimensionRegistry:
    """Small unconstrained registry: 3 x 2 x 2 points."""
    return parse_registry_mapping(
        {
            "dimensions": {
                "os": ["win", "linux", "mac"],
                "debug": "boolean",
                "bits": [32, 64],
            }
        },
        source="<test>",
    )
