"""
Shared test fixtures for the covidpass test suite.

Certificates are encoded in-test from claim dictionaries (see
tests/dcc_fixtures.py); no binary fixture files are needed.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest
import structlog

from covidpass.archive import PassAssets
from covidpass.domain.models import PassIdentity
from tests.dcc_fixtures import (
    FakePassSigner,
    FakeValueSetSource,
    FixedClock,
    standard_catalogs,
)


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    """Keep structlog configuration from leaking between tests."""
    yield
    structlog.reset_defaults()


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture()
def identity() -> PassIdentity:
    return PassIdentity(pass_type_identifier="pass.test.covid", team_identifier="TEAM123456")


@pytest.fixture()
def value_set_source() -> FakeValueSetSource:
    return FakeValueSetSource(standard_catalogs())


@pytest.fixture()
def signer() -> FakePassSigner:
    return FakePassSigner()


@pytest.fixture(scope="session")
def assets() -> PassAssets:
    return PassAssets.packaged()
