# backend/unit_catalog.py

"""
Unit Catalog - Static Reference Data

Supplies, per converter mode, the mapping of unit/currency code to a
ConversionUnit (display name + factor relative to the domain's base unit):
- LENGTH: factor = meters per unit
- VOLUME: factor = liters per unit
- CURRENCY: factor = units of the currency per unit of the rates source's
  base currency (populated at runtime by currency_rates_client)

Length and volume tables are fixed. The currency table starts empty and is
replaced wholesale on every successful rate refresh.
"""

from enum import Enum
from typing import Annotated, Dict, Iterable, List, Literal, Optional, Tuple, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator

# ==================== ENUMS ====================

class ConverterMode(str, Enum):
    """Conversion domain currently shown on the keypad screen"""
    CURRENCY = "CURRENCY"
    LENGTH = "LENGTH"
    VOLUME = "VOLUME"


class OperandSide(str, Enum):
    """Operand receiving keypad input"""
    FROM = "FROM"
    TO = "TO"


# ==================== DATA MODELS ====================

class ConversionUnit(BaseModel):
    """Immutable unit definition"""
    model_config = ConfigDict(frozen=True)

    code: str
    display_name: str
    factor: float = Field(gt=0)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, value: str) -> str:
        return value.strip().upper()


UnitTable = Dict[str, ConversionUnit]


class ReferenceDataSuccess(BaseModel):
    """Reference data refresh that produced a complete table"""
    model_config = ConfigDict(frozen=True)

    status: Literal["SUCCESS"] = "SUCCESS"
    units: List[ConversionUnit]


class ReferenceDataFailure(BaseModel):
    """Reference data refresh that failed, possibly with stale/partial units"""
    model_config = ConfigDict(frozen=True)

    status: Literal["FAILURE"] = "FAILURE"
    message: str
    partial_units: Optional[List[ConversionUnit]] = None


ReferenceDataOutcome = Annotated[
    Union[ReferenceDataSuccess, ReferenceDataFailure],
    Field(discriminator="status"),
]

# ==================== STATIC TABLES ====================

LENGTH_UNITS: List[ConversionUnit] = [
    ConversionUnit(code="METER", display_name="Meter", factor=1.0),
    ConversionUnit(code="KM", display_name="Kilometer", factor=1000.0),
    ConversionUnit(code="CM", display_name="Centimeter", factor=0.01),
    ConversionUnit(code="MM", display_name="Millimeter", factor=0.001),
    ConversionUnit(code="MILE", display_name="Mile", factor=1609.34),
    ConversionUnit(code="YARD", display_name="Yard", factor=0.9144),
    ConversionUnit(code="FOOT", display_name="Foot", factor=0.3048),
    ConversionUnit(code="INCH", display_name="Inch", factor=0.0254),
]

VOLUME_UNITS: List[ConversionUnit] = [
    ConversionUnit(code="LITER", display_name="Liter", factor=1.0),
    ConversionUnit(code="ML", display_name="Milliliter", factor=0.001),
    ConversionUnit(code="GALLON", display_name="Gallon", factor=3.78541),
    ConversionUnit(code="QUART", display_name="Quart", factor=0.946353),
    ConversionUnit(code="PINT", display_name="Pint", factor=0.473176),
    ConversionUnit(code="CUP", display_name="Cup", factor=0.24),
    ConversionUnit(code="OZ", display_name="Ounce", factor=0.0295735),
]

# Default (from, to) pair applied when a mode is selected
DEFAULT_CODES: Dict[ConverterMode, Tuple[str, str]] = {
    ConverterMode.CURRENCY: ("EUR", "USD"),
    ConverterMode.LENGTH: ("METER", "KM"),
    ConverterMode.VOLUME: ("LITER", "ML"),
}

# Currencies published by the rates source
CURRENCY_NAMES: Dict[str, str] = {
    "AUD": "Australian Dollar",
    "BGN": "Bulgarian Lev",
    "BRL": "Brazilian Real",
    "CAD": "Canadian Dollar",
    "CHF": "Swiss Franc",
    "CNY": "Chinese Yuan",
    "CZK": "Czech Koruna",
    "DKK": "Danish Krone",
    "EUR": "Euro",
    "GBP": "British Pound",
    "HKD": "Hong Kong Dollar",
    "HRK": "Croatian Kuna",
    "HUF": "Hungarian Forint",
    "IDR": "Indonesian Rupiah",
    "ILS": "Israeli New Shekel",
    "INR": "Indian Rupee",
    "ISK": "Icelandic Krona",
    "JPY": "Japanese Yen",
    "KRW": "South Korean Won",
    "MXN": "Mexican Peso",
    "MYR": "Malaysian Ringgit",
    "NOK": "Norwegian Krone",
    "NZD": "New Zealand Dollar",
    "PHP": "Philippine Peso",
    "PLN": "Polish Zloty",
    "RON": "Romanian Leu",
    "RUB": "Russian Ruble",
    "SEK": "Swedish Krona",
    "SGD": "Singapore Dollar",
    "THB": "Thai Baht",
    "TRY": "Turkish Lira",
    "USD": "US Dollar",
    "ZAR": "South African Rand",
}


def currency_display_name(code: str) -> str:
    """Human-readable currency name, falling back to the code itself"""
    return CURRENCY_NAMES.get(code.strip().upper(), code.strip().upper())


def build_unit_table(units: Iterable[ConversionUnit]) -> UnitTable:
    """
    Index units by code, keeping source order.

    A later duplicate code replaces the earlier definition.
    """
    table: UnitTable = {}
    for unit in units:
        table[unit.code] = unit
    return table


def static_unit_tables() -> Dict[ConverterMode, UnitTable]:
    """Reference tables available at session start (currency not yet fetched)"""
    return {
        ConverterMode.CURRENCY: {},
        ConverterMode.LENGTH: build_unit_table(LENGTH_UNITS),
        ConverterMode.VOLUME: build_unit_table(VOLUME_UNITS),
    }
