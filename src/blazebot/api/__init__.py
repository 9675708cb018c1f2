"""HTTP surface: static routes and request middleware."""
