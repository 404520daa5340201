"""Pydantic schemas for claims, stage results and workflow runs."""
