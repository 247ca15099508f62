"""HTTP dev-server for the carrier adapters."""
