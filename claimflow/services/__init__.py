"""Claims workflow services."""
