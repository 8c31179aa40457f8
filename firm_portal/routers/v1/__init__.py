"""v1 router package: all /api/v1/* endpoints live here.

Files:
  firms.py       : admin firm CRUD + token issue (/firms)
  tokens.py      : admin token listing (/tokens)
  audit.py       : admin audit log listing (/audit-logs)
  onboarding.py  : public token-gated onboarding (/onboarding/{token})
  access.py      : principal classification + admin session (/access)
  firm_portal.py : firm-scoped routes (/firm)

Rule: Routers only handle HTTP (request parsing, response shaping).
      All business logic delegates to firm_portal/services/.
"""
