"""Conversion error taxonomy."""
from typing import Optional, Sequence


class ConversionError(Exception):
    """Base class for every failure a conversion job can report."""


class FileTooLarge(ConversionError):
    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"File too large ({size} bytes). Maximum size is {limit // (1024 * 1024)} MB.")


class UnsupportedScenario(ConversionError):
    """No conversion path exists for the input/output kind pairing."""

    def __init__(self, input_type: str, target_format: str):
        self.input_type = input_type
        self.target_format = target_format
        super().__init__(f"Cannot convert {input_type or 'unknown type'} to {target_format or 'unknown format'}")


class UnsupportedTargetFormat(ConversionError):
    """The still-image engine has no writer for the requested format."""

    def __init__(self, target_format: str):
        self.target_format = target_format
        super().__init__(f"Unsupported image format: {target_format}")


class EngineUnavailable(ConversionError):
    """The transcoding engine is missing or its handle has been torn down."""


class EngineExecutionFailed(ConversionError):
    def __init__(self, message: str, scenario=None, args: Optional[Sequence[str]] = None):
        self.scenario = scenario
        self.args_vector = list(args) if args else []
        super().__init__(message)

    def __str__(self) -> str:
        base = super().__str__()
        if self.scenario is None:
            return base
        return f"{base} (scenario={getattr(self.scenario, 'value', self.scenario)})"


class Cancelled(ConversionError):
    def __init__(self, message: str = "Conversion cancelled"):
        super().__init__(message)
