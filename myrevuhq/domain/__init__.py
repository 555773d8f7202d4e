# Domain Layer
# ============
# Pure business rules with no I/O:
# - models.py:     users, customers, sent messages
# - tiers.py:      subscription tiers and SMS allowances
# - phone.py:      E.164 normalization
# - messages.py:   review-request SMS composition
# - sms_errors.py: provider error translation
# - keywords.py:   inbound opt-out / opt-in keywords
