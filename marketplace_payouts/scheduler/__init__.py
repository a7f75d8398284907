"""Background payout scheduling."""
