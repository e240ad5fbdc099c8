"""
Host-authoritative online play: one participant per room owns the GameState,
everyone else sends intents through a relay store and watches the published snapshot.
"""
