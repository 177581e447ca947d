"""orgpipe — provider data pipeline.

Fetches a provider's configuration, resolves its secret, fans out one
data API call per org and persists each result as JSON plus a flattened
one-row CSV.
"""

__version__ = "0.1.0"
