"""HTTP status API for the probe fleet."""
