"""Business rules for RepairFlow. Endpoints call these; they never touch HTTP."""
