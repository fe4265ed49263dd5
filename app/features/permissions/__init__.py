"""
Permission management feature module.

Roles, permissions and the role-permission assignment set, with the store
and mutator the command feature applies parsed intents through.
"""
