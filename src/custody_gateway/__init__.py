# Credential Custody Gateway
#
# Stores per-user provider credentials encrypted at rest, uses them
# server-side for AI and payment calls, and records every action in an
# append-only case ledger.

__version__ = "1.0.0"
