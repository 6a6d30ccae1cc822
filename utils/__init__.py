"""Utility helpers for the placement onboarding app."""
