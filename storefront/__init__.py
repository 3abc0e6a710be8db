"""
Storefront Cart Core

This package contains the client-side cart infrastructure:
- config: environment-driven settings
- logging: centralized logger configuration
- cart: store, persistence, price reconciliation, remote sync
- mock_server: in-memory cart API for development

Note: Submodules are imported explicitly by callers to keep
the mock server (FastAPI) out of plain client imports.
"""

__all__ = [
    "config",
    "logging",
    "cart",
    "mock_server",
]
