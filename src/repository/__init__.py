"""Package sources and per-target local repositories."""
