# src/rrkit/__init__.py
from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("rrkit")
except PackageNotFoundError:
    __version__ = "0.0.0"

from .rule import (
    Frequency,
    RecurrenceRule,
    ValidationResult,
    describe,
    parse,
    serialize,
    validate,
)
from .natural import recognize
from .matcher import matches
from .overlay import ExceptionSet, ExceptionType, RecurrenceException
from .generator import RecurrenceInstance, generate, instances_between
