"""LabelVerify - alcohol label extraction merging and compliance validation."""

__version__ = "1.0.0"
