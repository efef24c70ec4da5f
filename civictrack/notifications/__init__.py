"""
Notifications Bounded Context
=============================

Per-user in-app notification feeds, capped and newest first, fed by the
NotificationDispatcher after ticket changes commit.
"""
