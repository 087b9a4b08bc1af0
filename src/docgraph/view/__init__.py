"""Display-side state and rendering for a laid-out graph."""
