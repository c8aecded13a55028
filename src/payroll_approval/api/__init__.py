"""HTTP adapter for the payroll approval core."""
