"""Core repository engine: journal, content store, ledger, catalog and lifecycle."""
