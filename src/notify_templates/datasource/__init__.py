"""Feature-service access through the proxy, and the live-data orchestrator."""
