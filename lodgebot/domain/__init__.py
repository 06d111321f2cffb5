"""Domain layer: transport interface, connection models and reconnect policy."""
