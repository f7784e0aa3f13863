"""
Exception hierarchy for pgconverter.
"""

from typing import List, Optional


class PgConverterError(Exception):
    """Base exception for pgconverter errors."""
    pass


class FileFormatError(PgConverterError):
    """Input file is unreadable, malformed, or of the wrong format."""
    pass


class ConversionError(PgConverterError):
    """Error during a conversion stage."""
    pass


class MzTabCheckError(ConversionError):
    """The mzTab structural checker rejected a model."""

    def __init__(self, problems: List[str], path: Optional[str] = None):
        self.problems = problems
        self.path = path
        where = f" ({path})" if path else ""
        super().__init__(f"mzTab check failed{where}: " + "; ".join(problems))
