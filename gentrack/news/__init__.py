"""News matching, classification, risk ratings and semantic search."""
