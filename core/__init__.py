"""Core module - provider-neutral models, configuration and observability.

Local logistics record models live here. Hillebrand-specific HTTP, auth and
vocabulary logic belongs in /connectors/hillebrand/.
"""

__version__ = "1.0.0"
