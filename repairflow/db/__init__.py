"""
Database module for RepairFlow

Contains the installer's sample data.
"""
from repairflow.db.seed_data import load_sample_data, seed_all

__all__ = ["load_sample_data", "seed_all"]
