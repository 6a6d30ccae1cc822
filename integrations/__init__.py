"""HTTP integrations with the onboarding backend."""
