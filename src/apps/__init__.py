"""Command line and web applications for the Tarkov data overlay."""
