import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path for CI environments where
# Python might not automatically include it (e.g., some GitHub
# Actions runners invoking pytest differently).
PROJECT_ROOT = Path(__file__).parent.parent.resolve()
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from config.config_loader import BotSettings, ConfigLoader
from services.channel_registry import ChannelRegistry
from services.expiration_sweeper import ExpirationSweeper
from services.lifecycle import LifecycleReactor
from services.voice_service import PrivateVoiceService
from tests.factories import FakeClock, FakeGateway, make_settings


@pytest.fixture(autouse=True)
def _reset_config_loader():
    """ConfigLoader caches class-level state; keep tests isolated."""
    ConfigLoader.reset()
    yield
    ConfigLoader.reset()


@pytest.fixture
def settings() -> BotSettings:
    return make_settings()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def registry() -> ChannelRegistry:
    return ChannelRegistry()


@pytest.fixture
def voice_service(settings, registry, gateway, clock) -> PrivateVoiceService:
    return PrivateVoiceService(settings, registry, gateway, clock=clock)


@pytest.fixture
def reactor(settings, registry, gateway, voice_service, clock) -> LifecycleReactor:
    return LifecycleReactor(settings, registry, gateway, voice_service, clock=clock)


@pytest.fixture
def sweeper(settings, registry, voice_service, clock) -> ExpirationSweeper:
    return ExpirationSweeper(settings, registry, voice_service, clock=clock, test_mode=True)
