"""Core of cave: persisted state, image inventories, resolution and execution."""
