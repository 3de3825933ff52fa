"""Small helpers shared across the library: URIs, language tags and logging."""
