"""Live collaborative photo wall: placement engine and composite export."""
