"""EpiTrello collaborative board API."""
