"""
procurement_kernel -- infrastructure shared by every procurement module.

Typed exceptions, structured logging, the SQLAlchemy base and engine,
clock, declarative workflow types, document-number formats, the
date-scoped sequence counter, the audit-log sink, and the outbox.
"""
