"""State/store layer.

This package holds the keyed record store for vehicles and fuel records
and the change events it emits.  It is the only component allowed to
mutate logbook data; everything above it reads immutable snapshots.
"""
