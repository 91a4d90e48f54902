"""Common utilities shared by services (structured logging)."""
