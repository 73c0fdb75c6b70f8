"""holdfast: booking inventory hold engine."""
