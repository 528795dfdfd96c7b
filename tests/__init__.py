"""
IPA Store Test Suite

Tests for:
- Upload admission policy and review gate
- Subscription verification and Stripe webhook reconciliation
- App, developer, storage and webhook API endpoints
"""
