"""ORM models and seed data for the tutor database."""
