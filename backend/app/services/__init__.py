"""Domain services: primary-tab election and experience.

This package contains domain logic that is imported by HTTP routes and
socket handlers, keeping transport concerns separated from the rules.
"""
