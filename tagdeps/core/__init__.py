"""Resolution, extraction and lock reconciliation."""
