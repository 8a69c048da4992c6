"""Command line tooling for the Tarkov data overlay."""
