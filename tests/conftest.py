"""
==============================================================================
Pytest Configuration and Fixtures
==============================================================================

Provides settings, virtual-time scheduler, station manager and client
fixtures.

==============================================================================
"""

import pytest
from typing import Generator, List, Tuple
from fastapi.testclient import TestClient

from app.config import Settings
from app.main import app
from app.scanner.classifier import ScanClassifier
from app.scanner.models import ScanMode
from app.scanner.timers import ManualScheduler
from app.services.station_service import (
    ScanStationManager,
    get_station_manager,
    set_station_manager,
)


# ============================================================================
# SETTINGS FIXTURES
# ============================================================================

@pytest.fixture
def settings() -> Settings:
    """Settings with camera and audit disabled, independent of any .env file."""
    return Settings(
        _env_file=None,
        debug=False,
        camera_enabled=False,
        audit_enabled=False,
    )


# ============================================================================
# CLASSIFIER FIXTURES
# ============================================================================

@pytest.fixture
def scheduler() -> ManualScheduler:
    """Virtual clock; time only moves on advance()."""
    return ManualScheduler()


@pytest.fixture
def scans() -> List[Tuple[str, ScanMode]]:
    """Collects (code, mode) pairs dispatched by a classifier."""
    return []


@pytest.fixture
def notices() -> List[Tuple[str, str, str]]:
    """Collects (title, description, variant) notices."""
    return []


@pytest.fixture
def classifier(scheduler, scans, notices) -> Generator[ScanClassifier, None, None]:
    """Surface-profile classifier on a virtual clock."""
    instance = ScanClassifier(
        lambda code, mode: scans.append((code, mode)),
        scheduler=scheduler,
        notifier=lambda *notice: notices.append(notice),
    )
    yield instance
    instance.close()


# ============================================================================
# SERVICE FIXTURES
# ============================================================================

@pytest.fixture
def manager(settings: Settings) -> Generator[ScanStationManager, None, None]:
    """Station manager whose stations run on virtual clocks."""
    instance = ScanStationManager(settings=settings, scheduler_factory=ManualScheduler)
    yield instance
    instance.close_all()


@pytest.fixture(scope="function")
def client(manager: ScanStationManager) -> Generator[TestClient, None, None]:
    """Create test client bound to the test station manager."""
    app.dependency_overrides[get_station_manager] = lambda: manager

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    set_station_manager(None)
