"""Naming and unit rules for ranch medications and suppliers."""

import re
from typing import Optional

_CANONICAL_UNITS = {
    "pill": "pills",
    "powder": "g",
    "liquid": "mL",
    "injectable": "mL",
    "paste": "mL",
    "topical": "mL",
}

_WHITESPACE = re.compile(r"\s+")


def canonical_unit(format_name: Optional[str]) -> str:
    """Inventory unit implied by a medication's format."""
    return _CANONICAL_UNITS.get((format_name or "").lower(), "units")


def display_name(
    chemical_name: str,
    brand_name: str,
    format_name: str,
    concentration_value: Optional[str] = None,
    concentration_unit: Optional[str] = None,
) -> str:
    """e.g. 'Ivomec — Ivermectin 1% (injectable)'"""
    conc = ""
    if concentration_value and concentration_unit:
        conc = f" {concentration_value}{concentration_unit}"
    return f"{brand_name} — {chemical_name}{conc} ({format_name})"


def normalize_supplier_name(name: str) -> str:
    """Key used to de-duplicate suppliers: trimmed, lowercased, single-spaced."""
    return _WHITESPACE.sub(" ", name.strip().lower())


def format_concentration(value) -> Optional[str]:
    """Concentrations are stored as text; numbers keep their shortest form."""
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    text = str(value).strip()
    return text or None
