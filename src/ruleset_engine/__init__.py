"""Rule set engine.

Compiles stored rule sets (AND/OR trees of conditions, possibly nested)
into expression trees and evaluates them against a runtime context.
"""

__version__ = "0.1.0"
