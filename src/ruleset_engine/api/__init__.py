"""HTTP API for the rule set engine.

Read-only endpoints:
- /health
- /api/rules/{scope}/descriptors
- /api/rules/rule-sets/{id}/expression
- /api/rules/attributes/{id}/expression
- /api/rules/attributes/{id}/matches
"""

from ruleset_engine.api.app import create_app

__all__ = ["create_app"]
