"""Mandate engine — delegation of property management from owners to agencies."""
