"""OAuth 2.0 authorization code relying party for the MAuthN identity provider."""
