"""HTTP and WebSocket surface for dashboard clients."""
