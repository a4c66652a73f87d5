"""Health checking over grpc.health.v1."""
