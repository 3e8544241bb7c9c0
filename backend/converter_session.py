# backend/converter_session.py

"""
Converter Session - single writer around the conversion state engine.

Every change goes through dispatch(), which replaces the whole snapshot.
Callers must dispatch from the event loop thread; the rates fetch runs in
a worker thread but its outcome is dispatched back on the loop as an
ordinary ReferenceDataUpdated event.
"""

import logging
from typing import Optional

from conversion_state_engine import EngineEvent, EngineState, ReferenceDataUpdated, apply, initial_state
from currency_rates_client import CurrencyRatesClient
from unit_catalog import ConverterMode

logger = logging.getLogger(__name__)


class ConverterSession:
    """Holds the current EngineState for one calculator session"""

    def __init__(self, state: Optional[EngineState] = None):
        self.state = state or initial_state()

    def dispatch(self, event: EngineEvent) -> EngineState:
        logger.debug(f"Dispatching {type(event).__name__}")
        self.state = apply(self.state, event)
        return self.state

    def reset(self) -> EngineState:
        self.state = initial_state()
        return self.state

    async def load_currency_rates(self, client: CurrencyRatesClient) -> EngineState:
        """
        Consume one rates fetch and forward each emission into the engine.

        Fetch failures arrive as failure outcomes, so this never raises for
        network problems.
        """
        async for outcome in client.fetch_currency_rates():
            self.dispatch(ReferenceDataUpdated(mode=ConverterMode.CURRENCY, outcome=outcome))

        if self.state.last_error:
            logger.warning(f"Currency rates unavailable: {self.state.last_error}")
        else:
            logger.info(f"Currency table loaded with {len(self.state.units[ConverterMode.CURRENCY])} rates")
        return self.state
