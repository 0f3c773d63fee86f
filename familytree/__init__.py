"""
Backend package for the family album API.

This package provides a FastAPI application with store, image host and
payment gateway abstractions, so the same services run against Postgres,
S3 and Stripe in production and in-memory doubles in tests.
"""
