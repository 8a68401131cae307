"""Cinema listing sources and the shared raw screening types."""
