"""Typer command line for traintrack."""
