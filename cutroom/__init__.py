"""Cutroom - video review backend (version stacks + storage quota)."""
