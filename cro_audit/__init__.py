"""CRO audit service: agentic conversion-rate-optimization reports."""
