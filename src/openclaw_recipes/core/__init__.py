"""Core configuration and cryptographic primitives."""
