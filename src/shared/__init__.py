"""Shared models, errors, decoders and utilities for grpcdebug."""
