"""
Cross-cutting building blocks shared by the features: settings, logging,
database and media store wiring, middleware and error responses.
"""
