# Application layer: use cases built on the domain rules and infrastructure clients
#   sms_sender  - one review request, with every account/billing/quota check
#   scheduler   - scheduled SMS dispatcher
#   billing     - Stripe checkout, cancellation, webhooks
#   analytics   - monthly send statistics
#   inbound     - Twilio inbound SMS and delivery callbacks
#   customers   - customer listing and spreadsheet import
