"""
Shared fixtures for integration tests.

Every test starts from empty tables with the sample companies seeded.
"""

from collections.abc import Generator

import pytest
from psycopg_pool import ConnectionPool

from tests.conftest import reset_database



@pytest.fixture(autouse=True)
def clean_database(request: pytest.FixtureRequest) -> Generator[None, None, None]:
    """Reset tables before each test that touches the database."""
    if "pool" in request.fixturenames:
        pool: ConnectionPool = request.getfixturevalue("pool")
        reset_database(pool)
    yield
