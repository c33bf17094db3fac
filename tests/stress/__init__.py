"""
Churn Stress Scenarios

End-to-end runs of the orchestrator against a Redis-backed admin service:
- ST-001: Distinct collections, observing workers (10 workers)
- ST-002: Shared config, basic workers (2 workers, one shared handle)
- ST-003: Fault injection (forced status on worker 3's 5th create)

Run with: pytest tests/stress/ -v --tb=short
Set CHURN_STRESS_SECONDS=30 for full-length runs.
"""
