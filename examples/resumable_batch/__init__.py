"""Interrupt-and-resume walkthrough for safemap."""
