"""Run reports — terminal, JSON and YAML."""
