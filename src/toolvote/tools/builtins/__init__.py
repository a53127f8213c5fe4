"""Built-in tools."""

from toolvote.tools.builtins.calculator import CalculatorTool
from toolvote.tools.builtins.unit_convert import UnitConvertTool

__all__ = ["CalculatorTool", "UnitConvertTool"]
