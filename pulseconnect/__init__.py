"""PulseConnect donation matching and appointment lifecycle API."""
