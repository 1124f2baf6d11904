"""Skill metrics core package.

This package is organized by feature modules (skills, skill_updates, projects, ...)
with a thin Flask controller layer and service/repository layers underneath.
"""
