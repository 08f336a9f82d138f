"""Multi-project workspaces: member registry, dependency scheduling, and execution.

A workspace groups independently configured sub-projects ("members") under one
root and runs commands across them. Build-like operations respect the member
dependency graph: members are grouped into batches, each batch depending only on
earlier ones, and parallelism applies within a batch, never across batches.

State lives in a single human-editable descriptor at the workspace root. Every
CLI invocation loads it, acts, persists it once after all execution finished,
and exits; nothing is held across invocations.
"""
