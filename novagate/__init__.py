"""novagate — chat gateway with credential failover and per-client quota."""
