"""CLI module for noderpc."""
