"""Verification schema — organizations and verification cases.

Revision ID: verification_001
Revises:
Create Date: 2026-10-18
"""

from alembic import op

# revision identifiers, used by Alembic.
revision = "verification_001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("""
    CREATE TABLE IF NOT EXISTS organizations (
        id                      UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        org_code                VARCHAR(32) UNIQUE NOT NULL,
        legal_name              VARCHAR(255) NOT NULL DEFAULT '',
        role                    VARCHAR(20) NOT NULL,
        owner_user_id           UUID,
        gstin                   VARCHAR(15) UNIQUE,
        pan                     VARCHAR(10) UNIQUE,
        org_kyc                 JSONB,
        primary_bank_account    JSONB,
        compliance              JSONB,
        buyer_preferences       JSONB,
        catalog                 JSONB,
        fleet_and_compliance    JSONB,
        completed_steps         JSONB NOT NULL DEFAULT '[]',
        kyc_status              VARCHAR(30) NOT NULL DEFAULT 'DRAFT',
        is_onboarding_locked    BOOLEAN NOT NULL DEFAULT FALSE,
        is_verified             BOOLEAN NOT NULL DEFAULT FALSE,
        rejection_reason        TEXT,
        kyc_approved_at         TIMESTAMP,
        kyc_approved_by         VARCHAR(64),
        status                  VARCHAR(20) NOT NULL DEFAULT 'ACTIVE',
        created_at              TIMESTAMP DEFAULT NOW(),
        updated_at              TIMESTAMP DEFAULT NOW(),
        CONSTRAINT ck_organizations_lock CHECK (
            NOT is_onboarding_locked OR kyc_status IN ('SUBMITTED', 'APPROVED')
        )
    )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_organizations_role ON organizations(role)")
    op.execute("CREATE UNIQUE INDEX IF NOT EXISTS ix_organizations_owner_user_id ON organizations(owner_user_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_organizations_kyc_status ON organizations(kyc_status)")

    op.execute("""
    CREATE TABLE IF NOT EXISTS verification_cases (
        id                  UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        case_code           VARCHAR(64) UNIQUE NOT NULL,
        organization_id     UUID NOT NULL REFERENCES organizations(id),
        submission_attempt  INTEGER NOT NULL,
        submitted_data      JSONB NOT NULL DEFAULT '{}',
        status              VARCHAR(30) NOT NULL DEFAULT 'SUBMITTED',
        activity_log        JSONB NOT NULL DEFAULT '[]',
        rejection_reason    TEXT,
        reviewed_by         VARCHAR(64),
        reviewed_at         TIMESTAMP,
        created_at          TIMESTAMP DEFAULT NOW(),
        updated_at          TIMESTAMP DEFAULT NOW(),
        CONSTRAINT uq_case_org_attempt UNIQUE (organization_id, submission_attempt)
    )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_verification_cases_organization_id ON verification_cases(organization_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_verification_cases_status ON verification_cases(status)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_verification_cases_created_at ON verification_cases(created_at)")


def downgrade() -> None:
    for tbl in ("verification_cases", "organizations"):
        op.execute(f"DROP TABLE IF EXISTS {tbl} CASCADE")
