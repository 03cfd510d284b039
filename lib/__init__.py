"""Library packages for the extension upgrader."""
