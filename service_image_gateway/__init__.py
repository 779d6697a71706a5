"""Rabita secure image gateway service."""
