"""
SLA Module
==========

Bounded Context for ticket deadlines and their live status.

Responsibilities:
- Classify criticality from category and description keywords
- Fix each ticket's SLA deadline at creation
- Evaluate live SLA status and urgency score on every read
- Sweep open tickets and escalate critical/overdue ones (in-app and Slack)
- Hot-reload the SLA policy from YAML via watchdog
"""
