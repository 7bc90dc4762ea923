"""
Shared service utilities

Provides:
- logging: structured logging setup and task-scoped loggers
- metrics: Prometheus metrics publishing
- tracing: OpenTelemetry spans
- retry: exponential backoff for transient connection errors
- vault_client: HashiCorp Vault integration for cloud credentials
"""

__version__ = "1.0.0"
__all__ = ["logging", "metrics", "tracing", "retry", "vault_client"]
