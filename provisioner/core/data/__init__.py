"""Static step data — the ordered provisioning table."""
