"""User-facing interfaces for sitekit."""
