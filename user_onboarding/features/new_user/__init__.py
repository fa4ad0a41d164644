"""
New-user onboarding feature package.

Everything involved in onboarding a freshly created user lives here: the
domain types, the orchestrator that sequences the onboarding steps, the
Postgres-backed collaborators it calls, the webhook that accepts
user-created events and the worker job that consumes them.
"""
