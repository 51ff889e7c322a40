# MIT License
# Copyright (c) 2025 Hashborn

"""
Observability Module

Provides metrics and monitoring for the staking ledger.
"""

from .metrics import metrics_registry, update_metrics, record_operation

__all__ = ['metrics_registry', 'update_metrics', 'record_operation']
