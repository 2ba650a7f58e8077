# retouch/config/__init__.py
"""Configuration for Retouch."""
