"""Web surface of the overlay monitor."""
