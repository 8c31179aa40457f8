"""Pydantic schemas package.

Folder intent:
  common.py     : CamelModel base + HealthResponse (all schemas inherit CamelModel)
  firm.py       : Firm create/update DTOs and response models
  token.py      : Token responses and the tagged validation result
  audit.py      : Audit action kinds, typed detail shapes, audit responses
  onboarding.py : Password setup / verification DTOs
  access.py     : Access roles and classification responses
"""
