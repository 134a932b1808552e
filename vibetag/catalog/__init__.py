# Path: vibetag/catalog/__init__.py
# Purpose: Package initializer for the concept catalog and the opposite relation.
# Layer: vibetag/catalog.
# Details: Exposes the catalog store, label normalization, and opposite checks and repair.

from .catalog import ConceptCatalog, concept_id_for_label
from .opposites import OppositeIndex, OppositeRepairReport, find_asymmetric_pairs, repair_opposite_symmetry

__all__ = [
    "ConceptCatalog",
    "OppositeIndex",
    "OppositeRepairReport",
    "concept_id_for_label",
    "find_asymmetric_pairs",
    "repair_opposite_symmetry",
]
