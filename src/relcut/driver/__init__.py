from .integrate import DriverPolicy, IntegrationDriver
from .models import (
    BatchSummary,
    BuildResult,
    ReproductionReport,
    UnitFailure,
    UnitOutcome,
)
from .ports import BuildValidator, ReviewSystem, VersionControl

__all__ = [
    "BatchSummary",
    "BuildResult",
    "BuildValidator",
    "DriverPolicy",
    "IntegrationDriver",
    "ReproductionReport",
    "ReviewSystem",
    "UnitFailure",
    "UnitOutcome",
    "VersionControl",
]
