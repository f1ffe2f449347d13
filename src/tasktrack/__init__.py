"""Tasktrack — role-aware task tracking API.

Users register, authenticate with bearer tokens, and manage the tasks
they own. Admins see every task and read platform stats. Task list
queries sit behind a Redis read-through cache that is dropped on any
task mutation.
"""

__version__ = "0.1.0"
