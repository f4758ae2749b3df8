# src/trajsim_core/units.py
import logging

import pint

logger = logging.getLogger(__name__)
ureg = pint.UnitRegistry()
Quantity = ureg.Quantity
logger.debug("Pint Unit Registry initialized.")

# Canonical dimensionality for every time value accepted in configuration.
TIME_DIMENSIONALITY = ureg.parse_expression('second').dimensionality


def to_seconds(value) -> float:
    """
    Converts a time literal to a float number of seconds.

    Plain numbers are taken to already be in seconds. Strings are parsed by Pint
    (e.g., '250 ms', '2 min') and must carry a time dimension.

    Raises:
        pint.DimensionalityError: If the literal is not a time.
        pint.UndefinedUnitError: If the literal uses an unknown unit.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    qty = Quantity(value)
    if qty.dimensionless:
        return float(qty.magnitude)
    if qty.dimensionality != TIME_DIMENSIONALITY:
        raise pint.DimensionalityError(qty.units, ureg.second)
    return float(qty.to(ureg.second).magnitude)
