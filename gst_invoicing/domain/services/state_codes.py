# gst_invoicing/domain/services/state_codes.py
"""
GST state / union-territory codes (first two digits of a GSTIN).

``normalize_state_code`` accepts a bare code ("27"), a code embedded in a
label ("27-Maharashtra", "Karnataka (29)"), an official name or a common
two-letter abbreviation. Anything else is reported as unknown (None):
an unmapped name is never guessed into a code.
"""

from __future__ import annotations

import re

from gst_invoicing.core.errors import InvoiceValidationError

# code -> (official name, abbreviation)
GST_STATES: dict[str, tuple[str, str | None]] = {
    "01": ("Jammu and Kashmir", "JK"),
    "02": ("Himachal Pradesh", "HP"),
    "03": ("Punjab", "PB"),
    "04": ("Chandigarh", "CH"),
    "05": ("Uttarakhand", "UK"),
    "06": ("Haryana", "HR"),
    "07": ("Delhi", "DL"),
    "08": ("Rajasthan", "RJ"),
    "09": ("Uttar Pradesh", "UP"),
    "10": ("Bihar", "BR"),
    "11": ("Sikkim", "SK"),
    "12": ("Arunachal Pradesh", "AR"),
    "13": ("Nagaland", "NL"),
    "14": ("Manipur", "MN"),
    "15": ("Mizoram", "MZ"),
    "16": ("Tripura", "TR"),
    "17": ("Meghalaya", "ML"),
    "18": ("Assam", "AS"),
    "19": ("West Bengal", "WB"),
    "20": ("Jharkhand", "JH"),
    "21": ("Odisha", "OD"),
    "22": ("Chhattisgarh", "CG"),
    "23": ("Madhya Pradesh", "MP"),
    "24": ("Gujarat", "GJ"),
    "25": ("Daman and Diu", None),
    "26": ("Dadra and Nagar Haveli and Daman and Diu", "DH"),
    "27": ("Maharashtra", "MH"),
    "28": ("Andhra Pradesh (Before Division)", None),
    "29": ("Karnataka", "KA"),
    "30": ("Goa", "GA"),
    "31": ("Lakshadweep", "LD"),
    "32": ("Kerala", "KL"),
    "33": ("Tamil Nadu", "TN"),
    "34": ("Puducherry", "PY"),
    "35": ("Andaman and Nicobar Islands", "AN"),
    "36": ("Telangana", "TS"),
    "37": ("Andhra Pradesh", "AP"),
    "38": ("Ladakh", "LA"),
    "97": ("Other Territory", "OT"),
}

# Older or informal spellings still seen in addresses
_NAME_ALIASES: dict[str, str] = {
    "orissa": "21",
    "pondicherry": "34",
    "uttaranchal": "05",
    "nct of delhi": "07",
    "new delhi": "07",
    "andaman and nicobar": "35",
    "dadra and nagar haveli": "26",
    "ts": "36",
    "tg": "36",
    "or": "21",
}

_CODE_IN_TEXT = re.compile(r"\b(\d{1,2})\b")


def _name_key(raw: str) -> str:
    key = raw.lower().replace("&", " and ")
    return " ".join(key.split())


_BY_NAME: dict[str, str] = {_name_key(name): code for code, (name, _) in GST_STATES.items()}
_BY_NAME.update(_NAME_ALIASES)
_BY_ABBR: dict[str, str] = {abbr: code for code, (_, abbr) in GST_STATES.items() if abbr}


def _checked(code: str, raw: str) -> str:
    code = code.zfill(2)
    if code not in GST_STATES:
        raise InvoiceValidationError(f"'{raw}' is not a valid GST state code")
    return code


def normalize_state_code(raw: str | None) -> str | None:
    """Return the 2-digit GST state code for ``raw`` or None when unknown.

    Raises InvoiceValidationError for a numeric code that is not a GST
    state code (e.g. "99").
    """
    if not raw:
        return None
    text = raw.strip()
    if not text:
        return None

    if text.isdigit():
        return _checked(text, raw)

    m = _CODE_IN_TEXT.search(text)
    if m:
        return _checked(m.group(1), raw)

    key = _name_key(text)
    if key in _BY_NAME:
        return _BY_NAME[key]

    if len(text) == 2 and text.upper() in _BY_ABBR:
        return _BY_ABBR[text.upper()]

    return None


def state_name(code: str | None) -> str | None:
    if not code or code not in GST_STATES:
        return None
    return GST_STATES[code][0]
