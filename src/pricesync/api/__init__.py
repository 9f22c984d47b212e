"""REST API exposing the stored series and manual refresh."""
