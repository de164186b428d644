"""Format validators for Indian tax and bank identifiers."""

import re
from typing import Any, Mapping, Optional

GSTIN_RE = re.compile(r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]$")
PAN_RE = re.compile(r"^[A-Z]{5}[0-9]{4}[A-Z]$")
IFSC_RE = re.compile(r"^[A-Z]{4}0[A-Z0-9]{6}$")

REQUIRED_COMPLIANCE_DOCS = ("GST_CERTIFICATE", "PAN_CERTIFICATE")

MIN_ADDRESS_LENGTH = 20


def is_valid_gstin(gstin: Optional[str]) -> bool:
    return bool(gstin) and GSTIN_RE.match(gstin) is not None


def is_valid_pan(pan: Optional[str]) -> bool:
    return bool(pan) and PAN_RE.match(pan) is not None


def is_valid_ifsc(ifsc: Optional[str]) -> bool:
    return bool(ifsc) and IFSC_RE.match(ifsc) is not None


def uploaded_doc_types(snapshot: Mapping[str, Any]) -> set[str]:
    compliance = snapshot.get("compliance") or {}
    return {
        doc.get("doc_type")
        for doc in compliance.get("documents") or []
        if doc.get("doc_type")
    }


def documents_complete(snapshot: Mapping[str, Any]) -> bool:
    """Tax-registration and identity certificates are both uploaded."""
    uploaded = uploaded_doc_types(snapshot)
    return all(doc_type in uploaded for doc_type in REQUIRED_COMPLIANCE_DOCS)


def address_complete(address: Optional[str]) -> bool:
    return bool(address) and len(address) >= MIN_ADDRESS_LENGTH
