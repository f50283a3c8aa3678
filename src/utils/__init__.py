"""Utilities package for the GP Inventory core (config, constants, validators, dates)."""
