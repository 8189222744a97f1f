"""Infrastructure layer: HTTP catalog adapters and enrichment providers."""
