"""
Solar harvester package.

Polls the GoodWe SEMS portal together with UV and weather feeds, persists one
fused reading per cycle to TimescaleDB, and serves rolling averages and
day-partitioned history over HTTP.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-001)

TODO:
- None
"""
