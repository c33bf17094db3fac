"""
Stress Test Scenarios

Each scenario races collection lifecycle calls in a different shape:
- st001: distinct collection + config per worker, with not-found probes
- st002: many collections created from one shared config
- st003: injected status failure must fail the run and join every worker
"""
