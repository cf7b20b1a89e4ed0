"""Engine — the sequential step runner and command actions."""
