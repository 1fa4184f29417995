"""Public keys shipped with prebuilt."""
