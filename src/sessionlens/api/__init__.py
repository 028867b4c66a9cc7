"""HTTP API for sessionlens."""
