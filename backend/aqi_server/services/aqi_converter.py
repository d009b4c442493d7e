"""
PM2.5 → AQI Converter
=====================

Turns a PM2.5 concentration (µg/m³) into a US EPA Air Quality Index.

THE FORMULA:
-----------
    aqi = (aqi_high - aqi_low) / (pm_high - pm_low) * (pm25 - pm_low) + aqi_low

where pm_low/pm_high/aqi_low/aqi_high come from the row of the breakpoint
table that contains pm25. See the EPA technical assistance document:
https://document.airnow.gov/technical-assistance-document-for-the-reporting-of-daily-air-quailty.pdf

ROUNDING:
--------
The table is published at 0.1 µg/m³ resolution, so the input is rounded to one
decimal first (half-up, 12.35 -> 12.4). The AQI is rounded half-up to an int.

ABOVE THE TABLE:
---------------
Anything above 225.4 uses the last row, even past 500.0 µg/m³. That means the
AQI can go over 500. The EPA document lists this as an edge case and we keep
the raw formula result instead of clamping it.

Author: AQI Server Team
"""

import math
from decimal import Decimal, ROUND_HALF_UP, localcontext

from aqi_server.exceptions import OutOfDomainError
from aqi_server.models import AqiConversion, Breakpoint


# Ordered low -> high. Boundary values belong to the lower row.
PM25_BREAKPOINTS = (
    Breakpoint(pm_low=0.0, pm_high=9.0, aqi_low=0, aqi_high=50),
    Breakpoint(pm_low=9.1, pm_high=35.4, aqi_low=51, aqi_high=100),
    Breakpoint(pm_low=35.5, pm_high=55.4, aqi_low=101, aqi_high=150),
    Breakpoint(pm_low=55.5, pm_high=125.4, aqi_low=151, aqi_high=200),
    Breakpoint(pm_low=125.5, pm_high=225.4, aqi_low=201, aqi_high=300),
    Breakpoint(pm_low=225.5, pm_high=500.0, aqi_low=301, aqi_high=500),
)

# Top of the nominal scale
MAX_TABLE_PM25 = PM25_BREAKPOINTS[-1].pm_high


def _round_half_up(value: float, exponent: str) -> Decimal:
    # repr() gives the shortest string that round-trips, so 12.35 stays 12.35
    # instead of 12.3499999... and rounds up like a human would expect.
    with localcontext() as ctx:
        # enough digits for any finite float
        ctx.prec = 400
        return Decimal(repr(value)).quantize(Decimal(exponent), rounding=ROUND_HALF_UP)


def round_concentration(pm25: float) -> float:
    """
    Round a concentration to the table's resolution (one decimal, half-up).

    Raises:
        OutOfDomainError: if pm25 is NaN, infinite, or negative after rounding
    """
    if not math.isfinite(pm25):
        raise OutOfDomainError(pm25)

    rounded = _round_half_up(pm25, "0.1")
    if rounded < 0:
        raise OutOfDomainError(pm25)

    return float(rounded)


def find_breakpoint(pm25: float) -> Breakpoint:
    """
    Find the table row for an already-rounded concentration.

    The first row whose pm_high is >= pm25 wins. Anything above the last
    row's pm_high still gets the last row (open-ended).
    """
    if pm25 < 0:
        raise OutOfDomainError(pm25)

    for breakpoint in PM25_BREAKPOINTS:
        if pm25 <= breakpoint.pm_high:
            return breakpoint

    return PM25_BREAKPOINTS[-1]


def convert_detailed(pm25: float) -> AqiConversion:
    """
    Convert PM2.5 to AQI and say whether we ran off the top of the table.

    Args:
        pm25: Concentration in µg/m³ (e.g. a 24 hour average)

    Returns:
        AqiConversion with the AQI, the rounded input and the saturated flag

    Raises:
        OutOfDomainError: for negative or non-finite input
    """
    rounded = round_concentration(pm25)
    bp = find_breakpoint(rounded)

    raw = (bp.aqi_high - bp.aqi_low) / (bp.pm_high - bp.pm_low) * (rounded - bp.pm_low) + bp.aqi_low

    return AqiConversion(
        aqi=int(_round_half_up(raw, "1")),
        pm25=rounded,
        saturated=rounded > MAX_TABLE_PM25,
    )


def convert(pm25: float) -> int:
    """
    Convert a PM2.5 concentration to an AQI integer.

    Examples:
        convert(9.0)   -> 50
        convert(12.0)  -> 56
        convert(35.5)  -> 101
        convert(600.0) -> 572  (above the table, not clamped)

    Raises:
        OutOfDomainError: for negative or non-finite input
    """
    return convert_detailed(pm25).aqi
