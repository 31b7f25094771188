"""
GrazeTrack Engine

Pure domain logic for ranch management: land-management recommendations,
zone geometry normalization and area estimation, and medication naming rules.

No database or HTTP in here; the backend loads rows and calls these functions.
"""

from engine.recommendations import ZoneSnapshot, Recommendation, recommend_for_zone, build_recommendations
from engine.geometry import GeometryError, parse_geometry, normalize_geometry, area_acres
from engine.medications import canonical_unit, display_name, normalize_supplier_name

__version__ = "0.1.0"
