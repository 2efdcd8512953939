"""Formhand command-line interface."""
