"""
TradeVerify — Organization Verification Lifecycle for a B2B marketplace.

Architecture:
    tradeverify/
    ├── api/             # FastAPI routers (HTTP layer)
    ├── auth/            # Bearer token decoding, marketplace roles
    ├── db/              # SQLAlchemy models, engine, repositories
    ├── middleware/      # Request context, authentication, error handling
    ├── engine/          # Risk assessment + format validators (pure)
    ├── onboarding/      # Step-gated disclosure engine
    ├── verification/    # Case lifecycle, admin review, queue/history
    └── services/        # Identifier generator, per-organization locks

Module Boundaries:
    - Onboarding writes the Organization snapshot, one step at a time
    - Verification owns VerificationCase and keeps Organization.kyc_status in sync
    - The risk engine never touches the database
    - Every case action lands in the case activity log

Data Flow:
    Step writes → Organization → Submit → VerificationCase
    → Admin review → VerificationCase + Organization

Version: 1.0.0
"""

__version__ = "1.0.0"
