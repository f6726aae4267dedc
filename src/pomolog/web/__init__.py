"""HTTP interface for browser and remote views."""
