"""Record store access and release reconciliation."""
