"""Shared fixtures built from the test doubles in ``tests.helpers.fakes``."""

import pytest

from starling_sync.core.settings import Settings
from starling_sync.main import Services, build_services
from starling_sync.services.session import ReconciliationSession
from tests.helpers.fakes import FakeLedger, FakeNotifier, make_settings


@pytest.fixture()
def settings() -> Settings:
    return make_settings()


@pytest.fixture()
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture()
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture()
def session(ledger: FakeLedger) -> ReconciliationSession:
    return ReconciliationSession(ledger, "http://actual.test", "ledger-password", "budget-1")


@pytest.fixture()
def services(settings: Settings, ledger: FakeLedger, notifier: FakeNotifier) -> Services:
    return build_services(settings, ledger=ledger, notifier=notifier)
