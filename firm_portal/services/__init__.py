"""Services package: all business logic lives here, never in routers.

Files:
  audit.py             : audit log writer (every mutation) and admin reader
  firms.py             : firm registry (create, update, complete onboarding)
  tokens.py            : onboarding token engine (issue, validate, consume)
  onboarding.py        : orchestrator for the sign-up flow and webhook reconciliation
  access.py            : admin / firm / unrecognized classification, admin bookkeeping
  identity.py          : Identity Service boundary and the Clerk Frontend API client
  identity_webhooks.py : Svix signature checks and finalized-account parsing

Rule: routers call services, services call repositories, repositories call the DB.
      No SQLAlchemy queries in routers. No FastAPI imports in services.
"""
