"""
Onboarding Schemas — one payload model per disclosure step.

Each model is the whole section it writes: a step write replaces the
stored section wholesale with ``model_dump(mode="json")`` of its payload.
"""

import uuid
from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from tradeverify.engine.validators import is_valid_ifsc


class StepPayload(BaseModel):
    """Base for step payloads. Unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


# ── org-kyc ───────────────────────────────────────────────────────────


class PlantLocation(StepPayload):
    street: Optional[str] = None
    city: str = Field(min_length=1)
    pincode: Optional[str] = None
    state: Optional[str] = None
    gst_state_code: Optional[str] = None


class PrimaryContact(StepPayload):
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    mobile: str = Field(min_length=1)
    role: Optional[str] = None


class OrgKycPayload(StepPayload):
    legal_name: str = Field(min_length=1, max_length=255)
    trade_name: Optional[str] = None
    gstin: str = Field(min_length=1, max_length=15)
    pan: str = Field(min_length=1, max_length=10)
    cin: Optional[str] = Field(default=None, pattern=r"^[A-Z0-9]{21}$")
    registered_address: str = Field(min_length=1)
    business_type: str = Field(min_length=1)
    incorporation_date: Optional[date] = None
    primary_contact: PrimaryContact
    plant_locations: list[PlantLocation] = Field(default_factory=list)
    service_states: list[str] = Field(default_factory=list)

    # Format is scored by the risk engine, not rejected here
    @field_validator("gstin", "pan", mode="before")
    @classmethod
    def _upper(cls, v):
        return v.strip().upper() if isinstance(v, str) else v


# ── bank-details ──────────────────────────────────────────────────────


class SupportingDocument(StepPayload):
    doc_type: str = Field(min_length=1)
    file_name: str = Field(min_length=1)
    file_url: str = Field(min_length=1)
    document_number: Optional[str] = None
    uploaded_at: Optional[str] = None
    status: Optional[str] = None  # UPLOADED, PENDING, VERIFIED, REJECTED


class BankDetailsPayload(StepPayload):
    account_number: str = Field(min_length=1)
    account_holder_name: str = Field(min_length=1)
    ifsc: str
    bank_name: str = Field(min_length=1)
    branch_name: Optional[str] = None
    account_type: Optional[Literal["SAVINGS", "CURRENT", "OD"]] = None
    payout_method: str = Field(min_length=1)
    upi_details: Optional[str] = None
    # Set after penny-drop verification by the surrounding system
    penny_drop_status: Literal["PENDING", "VERIFIED", "FAILED"] = "PENDING"
    penny_drop_score: float = Field(default=0, ge=0, le=100)
    documents: list[SupportingDocument] = Field(default_factory=list)

    @field_validator("ifsc", mode="before")
    @classmethod
    def _upper_ifsc(cls, v):
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("ifsc")
    @classmethod
    def _ifsc_format(cls, v: str) -> str:
        if not is_valid_ifsc(v):
            raise ValueError("IFSC must be 4 letters, a zero, then 6 letters or digits")
        return v


# ── compliance-docs ───────────────────────────────────────────────────


class Declarations(StepPayload):
    warranty_assurance: bool
    terms_accepted: bool
    aml_compliance: bool


class ComplianceDocsPayload(StepPayload):
    documents: list[SupportingDocument] = Field(min_length=1)
    declarations: Declarations

    @model_validator(mode="after")
    def _all_declared(self):
        declined = [name for name, value in self.declarations.model_dump().items() if not value]
        if declined:
            raise ValueError(f"All declarations must be accepted: {', '.join(declined)}")
        return self


# ── buyer-preferences ─────────────────────────────────────────────────


Incoterm = Literal["DAP", "EXW", "FCA", "CPT", "CIP", "DDP"]


class BuyerPreferencesPayload(StepPayload):
    categories: list[str] = Field(min_length=1)
    typical_monthly_volume_mt: Optional[float] = Field(default=None, ge=0)
    incoterms: list[Incoterm] = Field(min_length=1)
    delivery_pins: list[str] = Field(min_length=1)
    acceptance_window: Literal["24h", "48h", "72h"]
    qc_requirement: Literal["VISUAL_WEIGHT", "LAB_REQUIRED"]
    notify_email: bool = False
    notify_sms: bool = False
    notify_whatsapp: bool = False
    notes: Optional[str] = None


# ── catalog ───────────────────────────────────────────────────────────


class CatalogProduct(StepPayload):
    category: str = Field(min_length=1)
    is_selected: bool
    grades: list[str] = Field(min_length=1)
    moq_per_order: float = Field(ge=0)
    std_lead_time: float = Field(ge=0)
    availability: list[str] = Field(default_factory=list)
    price_per_mt: float = Field(ge=0)


class LogisticsPreference(StepPayload):
    use_platform_3pl: bool
    self_pickup_allowed: bool


class CatalogPayload(StepPayload):
    catalog_products: list[CatalogProduct] = Field(min_length=1)
    plant_locations: list[PlantLocation] = Field(min_length=1)
    logistics_preference: LogisticsPreference


# ── fleet-compliance ──────────────────────────────────────────────────


class FleetType(StepPayload):
    type: str = Field(min_length=1)
    label: str = Field(min_length=1)
    vehicle_count: int = Field(ge=0)


class FleetCompliancePayload(StepPayload):
    fleet_types: list[FleetType] = Field(min_length=1)
    insurance_expiry: date
    policy_document: Optional[SupportingDocument] = None
    eway_bill_integration: Literal["api", "manual"]
    pod_method: Literal["driver_app", "pdf"]


# ── Responses ─────────────────────────────────────────────────────────


class OnboardingProgress(BaseModel):
    organization_id: Optional[uuid.UUID] = None
    role: str
    completed_steps: list[str] = Field(default_factory=list)
    required_steps: list[str] = Field(default_factory=list)
    next_step: Optional[str] = None
    current_progress: int = 0           # percent of required steps
    kyc_status: str = "DRAFT"
    is_onboarding_locked: bool = False
    rejection_reason: Optional[str] = None


class ProfileSummary(BaseModel):
    """Organization profile as returned after a step write."""

    organization_id: uuid.UUID
    org_code: str
    legal_name: str
    role: str
    kyc_status: str
    is_onboarding_locked: bool
    is_verified: bool
    completed_steps: list[str] = Field(default_factory=list)
    org_kyc: Optional[dict] = None
    primary_bank_account: Optional[dict] = None
    compliance: Optional[dict] = None
    buyer_preferences: Optional[dict] = None
    catalog: Optional[dict] = None
    fleet_and_compliance: Optional[dict] = None
    rejection_reason: Optional[str] = None
    kyc_approved_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
