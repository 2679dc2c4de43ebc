# libs/oms_shared/health.py
"""
Health check utilities for all services.
"""

from typing import Any, Dict, Optional

from .models import HealthResponse, HealthStatus


def status_from_checks(checks: Dict[str, bool]) -> HealthStatus:
    """
    Collapse named dependency checks into a single health status.

    All passing is OK, all failing is ERROR, anything in between is WARNING.
    No checks at all counts as OK.
    """
    if not checks or all(checks.values()):
        return HealthStatus.OK
    if not any(checks.values()):
        return HealthStatus.ERROR
    return HealthStatus.WARNING


def format_health_response(
    version: str,
    checks: Optional[Dict[str, bool]] = None,
    details: Optional[Dict[str, Any]] = None,
    status: Optional[HealthStatus] = None,
) -> HealthResponse:
    """
    Create a standardized health response.

    Args:
        version: Service version
        checks: Named dependency checks (e.g. {"store": True})
        details: Service-specific health details
        status: Explicit status; derived from ``checks`` when omitted

    Returns:
        Formatted health response
    """
    checks = checks or {}
    merged = dict(details or {})
    merged.update(
        {name: "ready" if ok else "unavailable" for name, ok in checks.items()}
    )
    return HealthResponse(
        status=status or status_from_checks(checks),
        details=merged,
        version=version,
    )
