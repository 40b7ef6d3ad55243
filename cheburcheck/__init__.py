"""Cheburcheck - reachability evidence and whitelist service."""
