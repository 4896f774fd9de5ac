"""External system connectors.

Each subpackage owns one external system's authentication, HTTP client,
wire models and vocabulary mapping. Reconcilers and API routes consume the
connector's raw records and mapping functions; no wire model is stored.

Available connectors:
- hillebrand/: Hillebrand freight-forwarder logistics API
"""
