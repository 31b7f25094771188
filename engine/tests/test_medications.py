"""
Tests for medication naming, inventory units and supplier normalization.
"""

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from engine.medications import canonical_unit, display_name, format_concentration, normalize_supplier_name


class TestCanonicalUnit:

    @pytest.mark.parametrize("fmt,unit", [
        ("pill", "pills"),
        ("powder", "g"),
        ("liquid", "mL"),
        ("injectable", "mL"),
        ("paste", "mL"),
        ("topical", "mL"),
    ])
    def test_known_formats(self, fmt, unit):
        assert canonical_unit(fmt) == unit

    def test_case_insensitive(self):
        assert canonical_unit("Injectable") == "mL"

    def test_unknown_format(self):
        assert canonical_unit("bolus") == "units"
        assert canonical_unit(None) == "units"


class TestDisplayName:

    def test_with_concentration(self):
        name = display_name("Ivermectin", "Ivomec", "injectable", "1", "%")
        assert name == "Ivomec — Ivermectin 1% (injectable)"

    def test_concentration_needs_both_parts(self):
        assert display_name("Ivermectin", "Ivomec", "injectable", "1", None) == "Ivomec — Ivermectin (injectable)"
        assert display_name("Ivermectin", "Ivomec", "injectable", None, "%") == "Ivomec — Ivermectin (injectable)"


class TestSupplierName:

    def test_normalizes_case_and_spacing(self):
        assert normalize_supplier_name("  Valley   Vet\tSupply ") == "valley vet supply"

    def test_same_key_for_variants(self):
        assert normalize_supplier_name("Valley Vet") == normalize_supplier_name("VALLEY  vet")


class TestFormatConcentration:

    def test_whole_float(self):
        assert format_concentration(10.0) == "10"

    def test_fractional_float(self):
        assert format_concentration(2.5) == "2.5"

    def test_text(self):
        assert format_concentration(" 1.5 ") == "1.5"

    def test_empty(self):
        assert format_concentration(None) is None
        assert format_concentration("  ") is None
