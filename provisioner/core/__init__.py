"""Core — domain models, engine, services, and use cases."""
