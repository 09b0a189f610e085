"""CLI package for interacting with the BioGas monitoring service."""
