"""Conversions between common units of one physical dimension."""

from __future__ import annotations

from pydantic import BaseModel, Field

from toolvote.tools.base import ProgressCallback, Tool, ToolResult

# unit -> (dimension, factor to the dimension's base unit)
_UNITS: dict[str, tuple[str, float]] = {
    "m": ("length", 1.0),
    "km": ("length", 1000.0),
    "cm": ("length", 0.01),
    "mm": ("length", 0.001),
    "in": ("length", 0.0254),
    "ft": ("length", 0.3048),
    "yd": ("length", 0.9144),
    "mi": ("length", 1609.344),
    "kg": ("mass", 1.0),
    "g": ("mass", 0.001),
    "lb": ("mass", 0.45359237),
    "oz": ("mass", 0.028349523125),
    "s": ("time", 1.0),
    "sec": ("time", 1.0),
    "min": ("time", 60.0),
    "h": ("time", 3600.0),
    "hr": ("time", 3600.0),
    "day": ("time", 86400.0),
    "l": ("volume", 1.0),
    "ml": ("volume", 0.001),
    "gal": ("volume", 3.785411784),
}
_TEMPERATURES = {"c", "f", "k"}


class UnitConvertInput(BaseModel):
    value: float
    from_unit: str = Field(description="Source unit, e.g. km, lb, °F")
    to_unit: str = Field(description="Target unit in the same dimension")


class UnitConvertTool(Tool):
    name = "unit_convert"
    description = "Convert a value between units of length, mass, time, volume or temperature."
    input_schema = UnitConvertInput
    tier = 2

    def run(self, data: BaseModel | dict, progress: ProgressCallback | None = None) -> ToolResult:
        payload = UnitConvertInput.model_validate(data)
        converted = convert_units(payload.value, payload.from_unit, payload.to_unit)
        return ToolResult(
            output={"status": "success", "value": converted, "unit": normalize_unit(payload.to_unit)}
        )


def normalize_unit(unit: str) -> str:
    return unit.strip().lower().lstrip("°")


def convert_units(value: float, from_unit: str, to_unit: str) -> float:
    source, target = normalize_unit(from_unit), normalize_unit(to_unit)
    if source in _TEMPERATURES and target in _TEMPERATURES:
        return _from_celsius(_to_celsius(value, source), target)
    if source in _UNITS and target in _UNITS:
        source_dimension, source_factor = _UNITS[source]
        target_dimension, target_factor = _UNITS[target]
        if source_dimension == target_dimension:
            return value * source_factor / target_factor
    raise ValueError(f"Unsupported unit conversion: {source} -> {target}")


def _to_celsius(value: float, unit: str) -> float:
    if unit == "f":
        return (value - 32) * 5 / 9
    if unit == "k":
        return value - 273.15
    return value


def _from_celsius(value: float, unit: str) -> float:
    if unit == "f":
        return value * 9 / 5 + 32
    if unit == "k":
        return value + 273.15
    return value
