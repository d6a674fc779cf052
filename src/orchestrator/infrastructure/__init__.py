"""Infrastructure layer: chain access and ledger persistence."""
