"""Domain models, ports and the aggregation engine."""
