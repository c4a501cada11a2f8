"""MCP server exposing the sync engine and item resolvers as tools."""
