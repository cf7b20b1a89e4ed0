"""Services — host probes, preflight, consent, and reporting."""
