"""Logging and metrics for kubesource."""
