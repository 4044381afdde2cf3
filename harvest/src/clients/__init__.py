"""
Upstream source adapters.

Exports the authenticated SEMS client and the best-effort weather client.

CHANGELOG:
- 2026-10-19: Export SemsClient, WeatherClient, parse_plant_kpi (STORY-006)
- 2026-10-19: Initial creation (STORY-005)

TODO:
- None
"""

from harvest.src.clients.sems import SemsClient, parse_plant_kpi
from harvest.src.clients.weather import WeatherClient

__all__ = ["SemsClient", "WeatherClient", "parse_plant_kpi"]
