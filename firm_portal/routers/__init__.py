"""Routers package: HTTP endpoint definitions.

Files:
  webhooks.py : Identity Service webhooks (/api/webhooks/*)
  v1/         : Versioned API routes (/api/v1/*)
"""
