"""gifsync: reconcile gif tunnels, VLANs and bridges against a tunnel document."""
