"""fleetaudit - audit device configuration policies against security baselines."""

__version__ = "1.2.0"
