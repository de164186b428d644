"""
Risk assessment engine.

Pure functions over an organization disclosure snapshot. No I/O.
"""

from tradeverify.engine.risk_assessment import (
    AutoChecks,
    RiskAssessment,
    RiskLevel,
    assess_risk,
    run_auto_checks,
)

__all__ = ["AutoChecks", "RiskAssessment", "RiskLevel", "assess_risk", "run_auto_checks"]
