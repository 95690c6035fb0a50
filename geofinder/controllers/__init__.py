"""Screen controllers: one per screen, each owning its persisted session state."""
