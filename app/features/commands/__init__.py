"""
Free-text command feature module.

Parses operator sentences such as 'Create a new role called "Moderator"'
into typed intents, resolves the names they mention and applies them to
the RBAC graph.
"""
