"""Product page copy generation service."""
