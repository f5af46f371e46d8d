"""Source-package registry API."""
