"""Sealed-bid OTC trade matching on a time-lock encryption oracle."""
