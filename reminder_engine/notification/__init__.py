"""Notification delivery package.

Renders reminder content, delivers it via SMTP with bounded retries and a
per-attempt timeout, and paces bulk sends in adaptive batches so the
relay is never flooded.
"""
