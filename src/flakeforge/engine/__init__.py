"""Execution engine: process runner, workers, worker pool and coordinator."""
