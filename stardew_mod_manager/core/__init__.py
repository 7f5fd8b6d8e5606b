"""Steam configuration access: VDF codec, localconfig store and Steam session."""
