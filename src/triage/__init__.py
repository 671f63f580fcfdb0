"""GitHub issue triage action.

This package implements a CI-driven triage bot for GitHub issues, providing:
- Webhook payload parsing for issue and issue comment events
- Actor classification (maintainer, external reporter, bot)
- A static rule table that turns an issue snapshot into mutation intents
- Idempotent application of those intents through the GitHub REST API
- Optional GitHub Projects (v2) board status synchronization
"""
