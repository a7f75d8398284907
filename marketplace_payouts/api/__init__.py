"""HTTP API for vendor payouts."""
