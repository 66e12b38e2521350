"""DocVault: document repository service."""
