"""Adapters connecting the engine to files and the remote catalog."""
