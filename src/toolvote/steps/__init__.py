"""State handlers driven by the turn machine."""
