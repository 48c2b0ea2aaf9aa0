"""Consumer-group library: configuration, heartbeat, shard workers, checkpoints and logger setup."""