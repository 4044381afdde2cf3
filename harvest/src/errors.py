"""
Error taxonomy for the harvester.

Every typed failure raised inside a poll cycle derives from HarvestError.
The cycle boundary in the poller contains all of them (and any other
Exception); the query API maps StoreError to a generic 500.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-002)
"""


class HarvestError(Exception):
    """Base class for all harvester errors."""


class AuthError(HarvestError):
    """The SEMS login exchange failed (network, status, or body)."""


class UpstreamError(HarvestError):
    """An upstream endpoint returned a non-2xx status or a malformed body."""


class StoreError(HarvestError):
    """Reading from or writing to the time-series store failed."""


class ForwardError(HarvestError):
    """Pushing a reading to the downstream sink failed."""
