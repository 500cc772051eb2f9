"""Mivvo Expertiz backend."""
