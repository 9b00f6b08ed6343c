"""Runnable safemap examples."""
