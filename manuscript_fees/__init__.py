"""
Manuscript Fees - Source Package

Manuscript-fee accounting for magazine publishing: magazines, issues,
authors, editors and per-work page counts, with a two-person double-entry
check before any fee figure is treated as final.

DESIGN PRINCIPLES:
1. Two people enter → System compares → Human resolves
2. Fail early, fail visibly
3. No silent corrections
4. Every state change must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Manuscript Fees Team"
