"""
ERDoc - Membership and intake service for on-call ER physician access.

Packages:
- erdoc: configuration, Supabase access, web application
- onboarding: intake progression engine and its router
"""

__version__ = "1.0.0"
