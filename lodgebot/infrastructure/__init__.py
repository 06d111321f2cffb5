"""Infrastructure layer: configuration and the WhatsApp connection."""
