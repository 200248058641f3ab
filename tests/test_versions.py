from __future__ import annotations

import pytest

from gatewaypy.errors import ServerVersionUnsupported
from gatewaypy.protocol import versions
from gatewaypy.transport.connection import build_start_api


@pytest.mark.parametrize("feature", sorted(versions.FEATURES.values()), ids=lambda f: f.name)
def test_feature_boundary(feature):
    assert not versions.is_supported(feature.min_version - 1, feature)
    assert versions.is_supported(feature.min_version, feature)
    assert versions.is_supported(feature.min_version + 1, feature)


def test_require_reports_feature_and_versions():
    versions.require(127, versions.PNL)

    with pytest.raises(ServerVersionUnsupported) as excinfo:
        versions.require(126, versions.PNL)
    err = excinfo.value
    assert err.server_version == 126
    assert err.required_version == 127
    assert err.feature == "PNL"
    assert "127" in str(err) and "126" in str(err) and "PNL" in str(err)


def test_lookup_by_name():
    assert versions.lookup("realized_pnl") is versions.REALIZED_PNL
    with pytest.raises(KeyError):
        versions.lookup("NO_SUCH_FEATURE")


def test_version_range():
    assert versions.version_range() == "v100..178"
    assert versions.version_range(150, 160) == "v150..160"
    with pytest.raises(ValueError):
        versions.version_range(170, 160)


def test_start_api_optional_capabilities_is_gated():
    at_min = versions.OPTIONAL_CAPABILITIES.min_version
    assert build_start_api(7, at_min - 1).fields == ["71", "2", "7"]
    assert build_start_api(7, at_min).fields == ["71", "2", "7", ""]
