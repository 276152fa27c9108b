"""Command line entry points for onionnet."""
