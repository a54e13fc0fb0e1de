"""Core components - transport, fetch utilities, repositories, exports."""
