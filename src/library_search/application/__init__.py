"""Application layer: the aggregation pipeline and the enrichment overlay."""
