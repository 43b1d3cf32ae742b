"""Quote/execution pipeline shared by the trading workflows."""
