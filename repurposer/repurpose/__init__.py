"""Repurpose pipeline: platform selection and orchestration."""
