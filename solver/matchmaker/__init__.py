"""Matchmaker authorization handshake."""
