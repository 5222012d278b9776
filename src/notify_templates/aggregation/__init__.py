"""Aggregation layer -- filters, statistics and graph data."""
