"""Developer tools for loa-bridge."""
