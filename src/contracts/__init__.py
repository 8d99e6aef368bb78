"""Contracts package.

Public cross-service contracts for the forwarder: stream names, envelope fields
and v1 payload semantics. Services may only share types via `src.core` and
`src.contracts`.
"""
