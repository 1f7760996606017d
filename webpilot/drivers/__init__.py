"""Browser session drivers."""
