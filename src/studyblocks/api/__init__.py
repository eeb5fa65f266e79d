"""HTTP surface over the per-document editing sessions."""
