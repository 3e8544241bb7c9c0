# backend/tests/test_converter_session.py

"""
Unit tests for Converter Session

Tests cover:
- dispatch() replaces the snapshot wholesale
- One-shot currency rate bootstrap (success and failure)
- reset()
"""

import pytest
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from conversion_state_engine import Digit, SelectMode
from converter_session import ConverterSession
from unit_catalog import ConversionUnit, ConverterMode, ReferenceDataFailure, ReferenceDataSuccess


class MockRatesClient:
    """Mock rates client yielding preset outcomes"""
    def __init__(self, *outcomes):
        self.outcomes = outcomes
        self.fetch_count = 0

    async def fetch_currency_rates(self):
        self.fetch_count += 1
        for outcome in self.outcomes:
            yield outcome


@pytest.fixture
def rates():
    return [
        ConversionUnit(code="EUR", display_name="Euro", factor=0.85),
        ConversionUnit(code="USD", display_name="US Dollar", factor=1.0),
    ]


class TestDispatch:
    """Test single-writer dispatch"""

    def test_dispatch_replaces_state(self):
        """Test each event yields a new snapshot"""
        session = ConverterSession()
        before = session.state

        after = session.dispatch(SelectMode(mode=ConverterMode.LENGTH))

        assert after is session.state
        assert after is not before
        assert before.mode == ConverterMode.CURRENCY
        assert after.mode == ConverterMode.LENGTH

    def test_reset(self):
        """Test reset restores session start state"""
        session = ConverterSession()
        session.dispatch(SelectMode(mode=ConverterMode.VOLUME))

        state = session.reset()

        assert state.mode == ConverterMode.CURRENCY
        assert (state.from_code, state.to_code) == ("EUR", "USD")


class TestLoadCurrencyRates:
    """Test the startup rate bootstrap"""

    @pytest.mark.asyncio
    async def test_success_populates_currency_table(self, rates):
        """Test rates flow into the engine and conversions use them"""
        session = ConverterSession()
        client = MockRatesClient(ReferenceDataSuccess(units=rates))

        state = await session.load_currency_rates(client)

        assert client.fetch_count == 1
        assert list(state.units[ConverterMode.CURRENCY]) == ["EUR", "USD"]
        assert state.last_error is None
        assert session.dispatch(Digit(token="5")).to_display == "5.88"

    @pytest.mark.asyncio
    async def test_failure_sets_last_error(self):
        """Test failure is surfaced as last_error, table left empty"""
        session = ConverterSession()
        client = MockRatesClient(ReferenceDataFailure(message="network error"))

        state = await session.load_currency_rates(client)

        assert state.last_error == "network error"
        assert state.units[ConverterMode.CURRENCY] == {}

    @pytest.mark.asyncio
    async def test_no_emission_leaves_state(self):
        """Test an empty fetch sequence changes nothing"""
        session = ConverterSession()
        before = session.state

        state = await session.load_currency_rates(MockRatesClient())

        assert state is before
