"""Live dashboard comparing the built overlay with tarkov.dev."""
