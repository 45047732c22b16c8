"""Command line front end for the Avid Content Core client."""
