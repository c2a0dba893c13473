"""Task lifecycle: storage, state machine, points and the periodic sweep."""
