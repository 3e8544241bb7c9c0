# backend/conversion_state_engine.py

"""
Conversion State Engine - Keypad Calculator Reducer

This engine is the sole owner of user-visible converter state:
- Active mode (CURRENCY / LENGTH / VOLUME) and active operand side
- Selected from/to codes and their displayed values
- Per-mode reference tables and the last reference-data error

apply(state, event) is pure and total:
- It never mutates the given snapshot; it returns a new EngineState
- It never raises for user input; unparseable values degrade to 0.0
- Missing unit lookups degrade to a neutral factor (see CONVERSION_STRATEGIES)

DISPLAY RULES:
1) The active side shows the raw accumulated keypad string
2) The paired side shows the converted value with exactly two decimals
3) "0.00" is the reset placeholder; the first keystroke replaces it
"""

import logging
import math
from decimal import ROUND_HALF_UP, Context, Decimal
from typing import Annotated, Callable, Dict, List, Literal, NamedTuple, Optional, Tuple, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator

from unit_catalog import (
    DEFAULT_CODES,
    ConversionUnit,
    ConverterMode,
    OperandSide,
    ReferenceDataOutcome,
    ReferenceDataSuccess,
    UnitTable,
    build_unit_table,
    static_unit_tables,
)

logger = logging.getLogger(__name__)

ZERO_DISPLAY = "0.00"
CLEAR_TOKEN = "C"

KeypadToken = Literal["0", "1", "2", "3", "4", "5", "6", "7", "8", "9", ".", "C"]

TWO_PLACES = Decimal("0.01")

# ==================== STATE ====================

class EngineState(BaseModel):
    """Single immutable snapshot of the converter screen"""
    model_config = ConfigDict(frozen=True)

    mode: ConverterMode = ConverterMode.CURRENCY
    active_side: OperandSide = OperandSide.FROM
    from_code: str = DEFAULT_CODES[ConverterMode.CURRENCY][0]
    to_code: str = DEFAULT_CODES[ConverterMode.CURRENCY][1]
    from_display: str = ZERO_DISPLAY
    to_display: str = ZERO_DISPLAY
    units: Dict[ConverterMode, UnitTable] = Field(default_factory=static_unit_tables)
    last_error: Optional[str] = None
    default_codes: Dict[ConverterMode, Tuple[str, str]] = Field(
        default_factory=lambda: dict(DEFAULT_CODES)
    )


def initial_state(units: Optional[Dict[ConverterMode, UnitTable]] = None) -> EngineState:
    """Session start state: CURRENCY mode, FROM side, EUR -> USD"""
    if units is None:
        return EngineState()
    tables = static_unit_tables()
    tables.update(units)
    return EngineState(units=tables)


# ==================== EVENTS ====================

class SelectSide(BaseModel):
    """Make one operand the keypad target"""
    model_config = ConfigDict(frozen=True)
    type: Literal["select_side"] = "select_side"
    side: OperandSide


class SwapSides(BaseModel):
    """Exchange from/to codes and values"""
    model_config = ConfigDict(frozen=True)
    type: Literal["swap_sides"] = "swap_sides"


class PickUnit(BaseModel):
    """Unit chosen from the picker for the active side"""
    model_config = ConfigDict(frozen=True)
    type: Literal["pick_unit"] = "pick_unit"
    code: str

    @field_validator("code")
    @classmethod
    def normalize_code(cls, value: str) -> str:
        # Matches ConversionUnit.code
        return value.strip().upper()


class SelectMode(BaseModel):
    """Switch conversion domain"""
    model_config = ConfigDict(frozen=True)
    type: Literal["select_mode"] = "select_mode"
    mode: ConverterMode


class Digit(BaseModel):
    """Keypad press: a digit, the decimal point or the clear key"""
    model_config = ConfigDict(frozen=True)
    type: Literal["digit"] = "digit"
    token: KeypadToken


class DismissError(BaseModel):
    """UI acknowledged the reference-data error notice"""
    model_config = ConfigDict(frozen=True)
    type: Literal["dismiss_error"] = "dismiss_error"


class ReferenceDataUpdated(BaseModel):
    """Result of a reference-data refresh for one mode"""
    model_config = ConfigDict(frozen=True)
    type: Literal["reference_data_updated"] = "reference_data_updated"
    mode: ConverterMode
    outcome: ReferenceDataOutcome


UiEvent = Annotated[
    Union[SelectSide, SwapSides, PickUnit, SelectMode, Digit, DismissError],
    Field(discriminator="type"),
]

EngineEvent = Union[SelectSide, SwapSides, PickUnit, SelectMode, Digit, DismissError, ReferenceDataUpdated]

# ==================== CONVERSION STRATEGIES ====================

def _convert_by_rate(value: float, active_factor: float, paired_factor: float) -> float:
    # Rates are "units of this currency per base unit"
    if active_factor == 0:
        return 0.0
    return value / active_factor * paired_factor


def _convert_by_base_unit(value: float, active_factor: float, paired_factor: float) -> float:
    # Factors are "base units per this unit"
    if paired_factor == 0:
        return 0.0
    return value * active_factor / paired_factor


class ConversionStrategy(NamedTuple):
    missing_factor: float
    convert: Callable[[float, float, float], float]


# A missing currency rate zeroes the result; a missing length/volume
# factor passes the value through unconverted.
CONVERSION_STRATEGIES: Dict[ConverterMode, ConversionStrategy] = {
    ConverterMode.CURRENCY: ConversionStrategy(missing_factor=0.0, convert=_convert_by_rate),
    ConverterMode.LENGTH: ConversionStrategy(missing_factor=1.0, convert=_convert_by_base_unit),
    ConverterMode.VOLUME: ConversionStrategy(missing_factor=1.0, convert=_convert_by_base_unit),
}

# ==================== DISPLAY HELPERS ====================

def parse_display(text: str) -> float:
    """Parse a display string, treating anything unparseable as 0.0"""
    try:
        value = float(text)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return value


def format_display(value: float) -> str:
    """
    Format a value with exactly two decimals, ROUND_HALF_UP, no grouping.

    Non-finite values render as the zero display.
    """
    if not math.isfinite(value):
        return ZERO_DISPLAY

    decimal_value = Decimal(str(value))
    # Precision must cover every integer digit plus the two decimals
    context = Context(prec=max(28, decimal_value.adjusted() + 3))
    rounded = decimal_value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP, context=context)
    if rounded == 0:
        return ZERO_DISPLAY
    return format(rounded, "f")


def factor_for(state: EngineState, code: str, mode: Optional[ConverterMode] = None) -> float:
    """Factor of `code` in the mode's table, or the mode's missing-factor default"""
    mode = mode or state.mode
    unit = state.units.get(mode, {}).get(code)
    if unit is None:
        return CONVERSION_STRATEGIES[mode].missing_factor
    return unit.factor


def picker_units(state: EngineState, mode: Optional[ConverterMode] = None) -> List[ConversionUnit]:
    """Units offered by the bottom-sheet picker, in table order"""
    return list(state.units.get(mode or state.mode, {}).values())


# ==================== TRANSITIONS ====================

def _accumulate(current: str, token: str) -> str:
    if token == CLEAR_TOKEN:
        return ZERO_DISPLAY
    if current == ZERO_DISPLAY:
        return token
    return current + token


def _update_value(state: EngineState, token: str) -> EngineState:
    """
    Apply a keypad token to the active side and recompute the paired side.

    Same algorithm for every mode; the mode only selects the strategy.
    """
    strategy = CONVERSION_STRATEGIES[state.mode]

    if state.active_side == OperandSide.FROM:
        current, active_code, paired_code = state.from_display, state.from_code, state.to_code
    else:
        current, active_code, paired_code = state.to_display, state.to_code, state.from_code

    updated = _accumulate(current, token)
    paired_value = strategy.convert(
        parse_display(updated),
        factor_for(state, active_code),
        factor_for(state, paired_code)
    )
    paired_display = format_display(paired_value)

    if state.active_side == OperandSide.FROM:
        return state.model_copy(update={"from_display": updated, "to_display": paired_display})
    return state.model_copy(update={"to_display": updated, "from_display": paired_display})


def _apply_reference_data(state: EngineState, event: ReferenceDataUpdated) -> EngineState:
    units = dict(state.units)
    outcome = event.outcome

    if isinstance(outcome, ReferenceDataSuccess):
        units[event.mode] = build_unit_table(outcome.units)
        return state.model_copy(update={"units": units, "last_error": None})

    if outcome.partial_units is not None:
        units[event.mode] = build_unit_table(outcome.partial_units)
    return state.model_copy(update={"units": units, "last_error": outcome.message})


def apply(state: EngineState, event: EngineEvent) -> EngineState:
    """Return the state that follows `event`; never mutates `state`"""
    if isinstance(event, SelectSide):
        return state.model_copy(update={"active_side": event.side})

    if isinstance(event, SwapSides):
        return state.model_copy(update={
            "from_code": state.to_code,
            "from_display": state.to_display,
            "to_code": state.from_code,
            "to_display": state.from_display,
        })

    if isinstance(event, PickUnit):
        if state.active_side == OperandSide.FROM:
            picked = state.model_copy(update={"from_code": event.code})
        else:
            picked = state.model_copy(update={"to_code": event.code})
        return _update_value(picked, CLEAR_TOKEN)

    if isinstance(event, SelectMode):
        from_code, to_code = state.default_codes[event.mode]
        return state.model_copy(update={
            "mode": event.mode,
            "from_code": from_code,
            "to_code": to_code,
            "from_display": ZERO_DISPLAY,
            "to_display": ZERO_DISPLAY,
        })

    if isinstance(event, Digit):
        return _update_value(state, event.token)

    if isinstance(event, ReferenceDataUpdated):
        return _apply_reference_data(state, event)

    if isinstance(event, DismissError):
        return state.model_copy(update={"last_error": None})

    logger.warning(f"Ignoring unsupported converter event: {type(event).__name__}")
    return state
