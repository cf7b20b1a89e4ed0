"""Configuration loading — provision.yml into ProvisionConfig."""
