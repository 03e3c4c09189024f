"""
Slack workspace directory provider: credential selection, lazy session
bootstrap, cached users/conversations with disk snapshots, and the
agent-facing lookup tools built on top of them.
"""
