# gst_invoicing/domain/services/gstin_validation.py

import re

PAN_REGEX = re.compile(r"^[A-Z]{5}[0-9]{4}[A-Z]$")
GSTIN_REGEX = re.compile(r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]$")


def normalize_gstin(gstin: str | None) -> str | None:
    if not gstin or not gstin.strip():
        return None
    return gstin.strip().upper()


def is_valid_gstin(gstin: str | None) -> bool:
    gstin = normalize_gstin(gstin)
    if not gstin or not GSTIN_REGEX.match(gstin):
        return False

    # chars 3-12 are the holder's PAN
    return bool(PAN_REGEX.match(gstin[2:12]))


def state_code_from_gstin(gstin: str | None) -> str | None:
    """First two digits of a GSTIN are the registering state's code."""
    gstin = normalize_gstin(gstin)
    if not gstin or not is_valid_gstin(gstin):
        return None
    return gstin[:2]
