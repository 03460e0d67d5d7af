"""Adapters binding the broker's ports to concrete infrastructure."""
