"""NuGet README access service."""
