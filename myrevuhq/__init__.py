# MyRevuHQ - SMS Review Request Service
# =====================================
# Backend for a small SaaS that stores a business's customers and texts them
# a templated review request, using a Layered Architecture:
#
# ARCHITECTURE LAYERS:
# - Presentation:   FastAPI routes (web/)
# - Application:    Use cases and orchestration (application/)
# - Domain:         Pure business logic (domain/)
# - Infrastructure: External services (SQLite, Twilio, Stripe, Supabase, Resend)
#
# Infrastructure clients are injected, so any provider can be swapped
# (e.g. the console SMS backend in development).

__version__ = "1.0.0"
