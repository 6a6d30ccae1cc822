"""Streamlit views for the onboarding app."""
