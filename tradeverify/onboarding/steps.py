"""
Onboarding step policy.

Step sets and role gates are fixed policy, compiled in:

    BUYER      org-kyc → bank-details → compliance-docs → buyer-preferences
    SELLER     org-kyc → bank-details → compliance-docs → catalog
    LOGISTICS  org-kyc → bank-details → fleet-compliance → compliance-docs
"""

from enum import StrEnum
from types import MappingProxyType
from typing import Mapping, Optional


class OrganizationRole(StrEnum):
    BUYER = "BUYER"
    SELLER = "SELLER"
    LOGISTICS = "LOGISTICS"


class OnboardingStep(StrEnum):
    ORG_KYC = "org-kyc"
    BANK_DETAILS = "bank-details"
    COMPLIANCE_DOCS = "compliance-docs"
    BUYER_PREFERENCES = "buyer-preferences"
    CATALOG = "catalog"
    FLEET_COMPLIANCE = "fleet-compliance"


REQUIRED_STEPS_BY_ROLE: Mapping[OrganizationRole, tuple[OnboardingStep, ...]] = MappingProxyType({
    OrganizationRole.BUYER: (
        OnboardingStep.ORG_KYC,
        OnboardingStep.BANK_DETAILS,
        OnboardingStep.COMPLIANCE_DOCS,
        OnboardingStep.BUYER_PREFERENCES,
    ),
    OrganizationRole.SELLER: (
        OnboardingStep.ORG_KYC,
        OnboardingStep.BANK_DETAILS,
        OnboardingStep.COMPLIANCE_DOCS,
        OnboardingStep.CATALOG,
    ),
    OrganizationRole.LOGISTICS: (
        OnboardingStep.ORG_KYC,
        OnboardingStep.BANK_DETAILS,
        OnboardingStep.FLEET_COMPLIANCE,
        OnboardingStep.COMPLIANCE_DOCS,
    ),
})

# Role-specific steps; absent steps are open to every role
STEP_REQUIRED_ROLE: Mapping[OnboardingStep, OrganizationRole] = MappingProxyType({
    OnboardingStep.BUYER_PREFERENCES: OrganizationRole.BUYER,
    OnboardingStep.CATALOG: OrganizationRole.SELLER,
    OnboardingStep.FLEET_COMPLIANCE: OrganizationRole.LOGISTICS,
})

# Organization attribute each step writes
STEP_SECTION: Mapping[OnboardingStep, str] = MappingProxyType({
    OnboardingStep.ORG_KYC: "org_kyc",
    OnboardingStep.BANK_DETAILS: "primary_bank_account",
    OnboardingStep.COMPLIANCE_DOCS: "compliance",
    OnboardingStep.BUYER_PREFERENCES: "buyer_preferences",
    OnboardingStep.CATALOG: "catalog",
    OnboardingStep.FLEET_COMPLIANCE: "fleet_and_compliance",
})

SNAPSHOT_SECTIONS: tuple[str, ...] = tuple(STEP_SECTION.values())


def required_steps(role: OrganizationRole | str) -> list[str]:
    """Ordered required step ids for a role; empty for unknown roles."""
    try:
        role = OrganizationRole(str(role).upper())
    except ValueError:
        return []
    return [step.value for step in REQUIRED_STEPS_BY_ROLE[role]]


def missing_steps(role: OrganizationRole | str, completed: list[str]) -> list[str]:
    done = set(completed or [])
    return [step for step in required_steps(role) if step not in done]


def next_step(role: OrganizationRole | str, completed: list[str]) -> Optional[str]:
    remaining = missing_steps(role, completed)
    return remaining[0] if remaining else None
