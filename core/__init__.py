"""Core domain logic for patient triage and alert dispatch.

This package contains the business logic and domain models,
isolated from external services for easy testing and reasoning.
"""
