"""splitstore_agent: splitstore disk usage exporter."""

AGENT_VERSION = "0.1.0"
