"""HTTP and WebSocket API for course generation jobs."""
