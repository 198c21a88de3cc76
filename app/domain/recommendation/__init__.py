"""Content recommendation scoring (genre, followed creator, engagement)."""
