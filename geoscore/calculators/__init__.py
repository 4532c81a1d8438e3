"""Score calculators."""

from geoscore.calculators.visibility import VisibilityScoreCalculator

__all__ = ["VisibilityScoreCalculator"]
