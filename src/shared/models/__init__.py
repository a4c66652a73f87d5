"""Pydantic snapshot models for channelz, CSDS and reports."""
