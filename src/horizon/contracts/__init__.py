"""Payload contracts for broadcast topics."""
