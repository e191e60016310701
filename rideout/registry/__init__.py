"""
Registries.

Item Registry (bike posts with cached aggregates) and Rating Store
(one row per rater per item).
"""
