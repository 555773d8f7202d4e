# Infrastructure Layer
# ====================
# Contains all external service integrations:
# - config/:      Environment and settings management
# - persistence/: SQLite repository (users, customers, messages)
# - sms/:         Twilio REST client and console backend
# - billing/:     Stripe REST client and webhook verification
# - auth/:        Supabase token verification
# - email/:       Resend admin notifications
# - geo/:         IP country lookup
# - importer/:    Excel/CSV customer import
#
# This layer can be replaced entirely without affecting domain/application layers.
