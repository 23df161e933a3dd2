"""
Services module for business logic separation.

This module contains the components of the short-link core, keeping them
separate from storage models and from any transport:

- code_generator: proposes short codes
- mapping_store: persists links behind a read-through cache
- redirect_service: resolves codes and records clicks
- click_ledger: buffers, flushes and aggregates click events
- link_service: the inbound interface and background task lifecycle
"""
