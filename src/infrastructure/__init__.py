"""Infrastructure layer: MCP transport and server, external service adapters."""
