"""
Chinese calendrical charts: four pillars, solar terms, lunar calendar,
flying stars, hexagrams and Zi Wei Dou Shu.
"""

from tongshu.bazi import ChartRequest, compute_chart, compute_pillars
from tongshu.errors import InvalidInput, SolverConvergenceError, TableLookupMiss, TongshuError
from tongshu.lunar import lunar_to_solar, solar_to_lunar
from tongshu.solar_terms import compute_solar_terms

__version__ = "0.1.0"

__all__ = [
    "ChartRequest",
    "compute_chart",
    "compute_pillars",
    "compute_solar_terms",
    "lunar_to_solar",
    "solar_to_lunar",
    "InvalidInput",
    "SolverConvergenceError",
    "TableLookupMiss",
    "TongshuError",
]
