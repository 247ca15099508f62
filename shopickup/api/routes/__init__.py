"""Per-carrier API routers."""
