"""EpiFriend: a local seizure diary, medication schedule and report export.

This package holds the domain models and the storage-backed stores,
kept free of any UI so they can be driven from the CLI or from tests.
"""
