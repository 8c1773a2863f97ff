"""Version 1 of the Team Hub API."""
