"""
Insurance verification MCP gateway.

This package exposes a narrow, audited tool surface that lets an external AI
agent read a patient's identity and insurance details for eligibility
verification:

- Header-based auth gate (API key, actor, purpose binding, unmask policy)
- Five read-only tools behind a schema-validating dispatcher
- Per-field PHI masking decided by each handler
- Deterministic READY / NEEDS_INFO readiness verdicts
- Field-path audit log for every tool call (paths, never values)

Transports: FastAPI over HTTP (`http_server`) and MCP over stdio (`main`).
"""
